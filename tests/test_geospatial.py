import math

import pytest

from pickup_dispatch.models.domain import Coordinates
from pickup_dispatch.services.geospatial import (
    FuelProfile,
    compute_route_metrics,
    distance_km,
    haversine_km,
    path_distance_km,
    round_half_up,
)

PROFILE = FuelProfile(efficiency_km_per_liter=8.0, price_per_liter=150.0, co2_kg_per_liter=2.3)


def test_haversine_one_degree_on_equator() -> None:
    expected = 6371.0 * math.pi / 180
    assert haversine_km(0.0, 0.0, 0.0, 1.0) == pytest.approx(expected)


def test_distance_is_symmetric() -> None:
    a = Coordinates(longitude=85.30, latitude=27.70)
    b = Coordinates(longitude=85.32, latitude=27.72)

    assert distance_km(a, b) == pytest.approx(distance_km(b, a))
    assert distance_km(a, a) == 0.0


def test_path_distance_sums_consecutive_legs() -> None:
    a = Coordinates(longitude=85.30, latitude=27.70)
    b = Coordinates(longitude=85.32, latitude=27.72)
    c = Coordinates(longitude=85.31, latitude=27.69)

    forward = path_distance_km([a, b, c])
    assert forward == pytest.approx(distance_km(a, b) + distance_km(b, c))
    assert path_distance_km([c, b, a]) == pytest.approx(forward)


def test_path_distance_is_zero_below_two_points() -> None:
    assert path_distance_km([]) == 0.0
    assert path_distance_km([Coordinates(longitude=85.3, latitude=27.7)]) == 0.0


def test_round_half_up_rounds_ties_away_from_zero() -> None:
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(0.5) == 1.0
    assert round_half_up(1.234, 2) == 1.23


def test_route_metrics_for_one_degree_leg() -> None:
    metrics = compute_route_metrics(
        [Coordinates(longitude=0.0, latitude=0.0), Coordinates(longitude=1.0, latitude=0.0)],
        PROFILE,
    )

    assert metrics.total_distance_km == 111.19
    assert metrics.estimated_fuel_cost == 2085
    assert isinstance(metrics.estimated_fuel_cost, int)
    assert metrics.co2_emissions_kg == 31.97


def test_route_metrics_empty_route() -> None:
    metrics = compute_route_metrics([], PROFILE)

    assert metrics.total_distance_km == 0.0
    assert metrics.estimated_fuel_cost == 0
    assert metrics.co2_emissions_kg == 0.0


def test_fuel_profile_reads_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    from pickup_dispatch.config import settings

    monkeypatch.setattr(settings, "fuel_price_per_liter", 200.0)
    profile = FuelProfile.from_settings()

    assert profile.price_per_liter == 200.0
    assert profile.efficiency_km_per_liter == settings.fuel_efficiency_km_per_liter
