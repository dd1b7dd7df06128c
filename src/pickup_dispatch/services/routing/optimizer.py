"""Priority-based stop ordering and straight-line route metrics."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Sequence

from ...models.domain import Route, RouteMetrics, RouteStop, StopPriority
from ..geospatial import FuelProfile, compute_route_metrics

logger = logging.getLogger(__name__)

PRIORITY_WEIGHTS = {
    StopPriority.URGENT: 4,
    StopPriority.HIGH: 3,
    StopPriority.MEDIUM: 2,
    StopPriority.LOW: 1,
}


def renumber(stops: Sequence[RouteStop]) -> tuple[RouteStop, ...]:
    """Assign orders 1..N following the sequence position."""

    return tuple(replace(stop, order=index) for index, stop in enumerate(stops, start=1))


def normalize_order(stops: Sequence[RouteStop]) -> tuple[RouteStop, ...]:
    """Sort by the stops' own ``order`` values and make them contiguous."""

    return renumber(sorted(stops, key=lambda stop: stop.order))


class RouteOptimizer:
    """Reorders route stops and recomputes travel metrics.

    Ordering is a plain priority sort: this is not a travelling-salesman
    solver and never looks at distances.
    """

    def __init__(self, profile: FuelProfile | None = None) -> None:
        self.profile = profile or FuelProfile.from_settings()

    def optimize(self, route: Route, now: datetime) -> None:
        # sorted() is stable; the order key only makes the tie-break explicit.
        ordered = sorted(route.stops, key=lambda stop: (-PRIORITY_WEIGHTS[stop.priority], stop.order))
        route.stops = renumber(ordered)
        route.last_optimized = now
        route.updated_at = now
        logger.debug(f"Optimized route {route.id}: {[stop.stop_id for stop in route.stops]}")

    def calculate_metrics(self, route: Route) -> RouteMetrics:
        metrics = compute_route_metrics([stop.coordinates for stop in route.stops], self.profile)
        route.metrics = metrics
        return metrics
