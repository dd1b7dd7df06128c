from datetime import datetime, timezone

import pytest

from pickup_dispatch.models.domain import Coordinates, Route, RouteStop, StopAddress, StopPriority
from pickup_dispatch.services.geospatial import FuelProfile, distance_km
from pickup_dispatch.services.routing.optimizer import RouteOptimizer, normalize_order

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _stop(stop_id: str, lat: float, lon: float, priority: StopPriority, order: int) -> RouteStop:
    return RouteStop(
        stop_id=stop_id,
        address=StopAddress(street=f"{stop_id} street", area="Baneshwor"),
        coordinates=Coordinates(longitude=lon, latitude=lat),
        priority=priority,
        order=order,
    )


def _route(*stops: RouteStop) -> Route:
    return Route(id="route-1", name="Ward 10", stops=tuple(stops))


def _optimizer() -> RouteOptimizer:
    return RouteOptimizer(FuelProfile(efficiency_km_per_liter=8.0, price_per_liter=150.0, co2_kg_per_liter=2.3))


def test_optimize_orders_by_priority_weight() -> None:
    route = _route(
        _stop("s1", 27.70, 85.30, StopPriority.LOW, 1),
        _stop("s2", 27.72, 85.32, StopPriority.URGENT, 2),
        _stop("s3", 27.69, 85.31, StopPriority.MEDIUM, 3),
    )

    _optimizer().optimize(route, NOW)

    assert [stop.stop_id for stop in route.stops] == ["s2", "s3", "s1"]
    assert [stop.order for stop in route.stops] == [1, 2, 3]
    assert route.last_optimized == NOW


def test_optimize_keeps_relative_order_of_equal_priorities() -> None:
    route = _route(
        _stop("a", 27.70, 85.30, StopPriority.HIGH, 3),
        _stop("b", 27.71, 85.31, StopPriority.MEDIUM, 1),
        _stop("c", 27.72, 85.32, StopPriority.HIGH, 5),
        _stop("d", 27.73, 85.33, StopPriority.MEDIUM, 2),
    )

    _optimizer().optimize(route, NOW)

    assert [stop.stop_id for stop in route.stops] == ["a", "c", "b", "d"]


def test_optimize_is_a_permutation_with_contiguous_orders() -> None:
    priorities = [StopPriority.LOW, StopPriority.URGENT, StopPriority.HIGH, StopPriority.MEDIUM, StopPriority.URGENT]
    stops = [_stop(f"s{i}", 27.7 + i / 100, 85.3, priority, i * 10) for i, priority in enumerate(priorities, start=1)]
    route = _route(*stops)

    _optimizer().optimize(route, NOW)

    assert sorted(stop.stop_id for stop in route.stops) == sorted(stop.stop_id for stop in stops)
    assert [stop.order for stop in route.stops] == list(range(1, len(stops) + 1))


def test_optimize_does_not_touch_stop_content() -> None:
    original = _stop("s1", 27.70, 85.30, StopPriority.LOW, 4)
    route = _route(original)

    _optimizer().optimize(route, NOW)

    [stop] = route.stops
    assert stop.order == 1
    assert stop.coordinates == original.coordinates
    assert stop.address == original.address


def test_calculate_metrics_matches_leg_sum_and_is_symmetric() -> None:
    a = _stop("a", 27.70, 85.30, StopPriority.LOW, 1)
    b = _stop("b", 27.72, 85.32, StopPriority.LOW, 2)
    c = _stop("c", 27.69, 85.31, StopPriority.LOW, 3)
    optimizer = _optimizer()

    forward = optimizer.calculate_metrics(_route(a, b, c))
    backward = optimizer.calculate_metrics(_route(c, b, a))

    expected = distance_km(a.coordinates, b.coordinates) + distance_km(b.coordinates, c.coordinates)
    assert forward.total_distance_km == pytest.approx(expected, abs=0.005)
    assert forward == backward


def test_calculate_metrics_replaces_previous_values() -> None:
    route = _route(_stop("a", 27.70, 85.30, StopPriority.LOW, 1), _stop("b", 27.72, 85.32, StopPriority.LOW, 2))
    optimizer = _optimizer()
    optimizer.calculate_metrics(route)

    route.stops = route.stops[:1]
    metrics = optimizer.calculate_metrics(route)

    assert metrics.total_distance_km == 0.0
    assert route.metrics == metrics


def test_normalize_order_closes_gaps() -> None:
    stops = normalize_order(
        [
            _stop("late", 27.70, 85.30, StopPriority.LOW, 9),
            _stop("early", 27.71, 85.31, StopPriority.LOW, 2),
        ]
    )

    assert [(stop.stop_id, stop.order) for stop in stops] == [("early", 1), ("late", 2)]
