"""Route management: creation, stop editing, optimization and status."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional, Sequence

from ...errors import InvalidStateTransition, NotFound, ValidationError
from ...models.domain import (
    ACTIVE_ROUTE_STATUSES,
    Coordinates,
    Frequency,
    Route,
    RouteSchedule,
    RouteStatus,
    RouteStop,
    Weekday,
)
from ...persistence.base import RouteQuery, RouteRepository
from ..clock import Clock, utc_now
from ..concurrency import retry_on_conflict
from ..geospatial import distance_km
from ..notifications import events
from ..notifications.events import EventPublisher
from .optimizer import RouteOptimizer, normalize_order, renumber
from .schedule import next_scheduled_at

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = frozenset({RouteStatus.ACTIVE, RouteStatus.INACTIVE})
DEFAULT_NEAR_DISTANCE_M = 5000.0


@dataclass(slots=True, frozen=True)
class RouteDraft:
    name: str
    schedule: RouteSchedule
    stops: tuple[RouteStop, ...] = ()
    description: Optional[str] = None
    status: RouteStatus = RouteStatus.ACTIVE


@dataclass(slots=True, frozen=True)
class RouteChanges:
    name: Optional[str] = None
    description: Optional[str] = None
    schedule: Optional[RouteSchedule] = None
    stops: Optional[tuple[RouteStop, ...]] = None
    status: Optional[RouteStatus] = None


def route_payload(route: Route, **extra: Any) -> dict[str, Any]:
    payload = {
        "route_id": route.id,
        "name": route.name,
        "status": route.status.value,
        "assigned_driver": route.assigned_driver,
        "location_count": route.location_count,
        "recipients": [route.assigned_driver] if route.assigned_driver else [],
    }
    payload.update(extra)
    return payload


def _require_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Route name is required.")
    if len(name) > 100:
        raise ValidationError("Route name cannot exceed 100 characters.")
    return name


class RouteService:
    def __init__(
        self,
        routes: RouteRepository,
        publisher: EventPublisher,
        *,
        optimizer: RouteOptimizer | None = None,
        clock: Clock | None = None,
        attempts: int | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.routes = routes
        self.publisher = publisher
        self.optimizer = optimizer or RouteOptimizer()
        self.clock = clock or utc_now
        self.attempts = attempts
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    # Queries

    def get(self, route_id: str) -> Route:
        route = self.routes.get(route_id)
        if route is None or route.is_deleted:
            raise NotFound("route", route_id)
        return route

    def list(
        self,
        *,
        statuses: Sequence[RouteStatus] = (),
        frequency: Frequency | None = None,
        driver_id: str | None = None,
    ) -> list[Route]:
        routes = self.routes.query(RouteQuery(statuses=tuple(statuses), driver_id=driver_id, frequency=frequency))
        return _newest_first(routes)

    def scheduled_for(self, day: date, *, driver_id: str | None = None) -> list[Route]:
        return self.routes.query(
            RouteQuery(statuses=tuple(ACTIVE_ROUTE_STATUSES), driver_id=driver_id, day=Weekday.from_date(day))
        )

    def scheduled_today(self, *, driver_id: str | None = None) -> list[Route]:
        return self.scheduled_for(self.clock().date(), driver_id=driver_id)

    def routes_near(self, location: Coordinates, max_distance_m: float = DEFAULT_NEAR_DISTANCE_M) -> list[Route]:
        """Routes with at least one stop within ``max_distance_m``, nearest first."""

        limit_km = max_distance_m / 1000.0
        ranked: list[tuple[float, Route]] = []
        for route in self.routes.query(RouteQuery()):
            if not route.stops:
                continue
            nearest = min(distance_km(location, stop.coordinates) for stop in route.stops)
            if nearest <= limit_km:
                ranked.append((nearest, route))
        ranked.sort(key=lambda item: item[0])
        return [route for _, route in ranked]

    def next_scheduled_at(self, route: Route) -> datetime | None:
        return next_scheduled_at(route, self.clock())

    # Commands

    def create(self, draft: RouteDraft) -> Route:
        if draft.status not in EDITABLE_STATUSES:
            raise ValidationError(f"New routes must be active or inactive, got '{draft.status.value}'.")
        now = self.clock()
        route = Route(
            id=self._new_id(),
            name=_require_name(draft.name),
            description=draft.description,
            status=draft.status,
            schedule=draft.schedule,
            stops=normalize_order(draft.stops),
            created_at=now,
            updated_at=now,
        )
        self.optimizer.calculate_metrics(route)
        saved = self.routes.add(route)
        logger.info(f"Created route {saved.id} '{saved.name}' with {saved.location_count} stops")
        self.publisher.publish(events.ROUTE_CREATED, route_payload(saved))
        return saved

    def update(self, route_id: str, changes: RouteChanges) -> Route:
        def mutate(route: Route, now: datetime) -> None:
            if changes.status is not None and changes.status is not route.status:
                if route.status not in EDITABLE_STATUSES or changes.status not in EDITABLE_STATUSES:
                    raise InvalidStateTransition("route", route.status.value, f"set status to {changes.status.value}")
                route.status = changes.status
            if changes.name is not None:
                route.name = _require_name(changes.name)
            if changes.description is not None:
                route.description = changes.description
            if changes.schedule is not None:
                route.schedule = changes.schedule
            if changes.stops is not None:
                route.stops = normalize_order(changes.stops)
                self.optimizer.calculate_metrics(route)
            route.updated_at = now

        saved = self._apply(route_id, "update", mutate)
        self.publisher.publish(events.ROUTE_UPDATED, route_payload(saved))
        return saved

    def add_stop(self, route_id: str, stop: RouteStop) -> Route:
        def mutate(route: Route, now: datetime) -> None:
            if any(existing.stop_id == stop.stop_id for existing in route.stops):
                raise ValidationError(f"Stop '{stop.stop_id}' is already on route {route.id}.")
            route.stops = renumber([*route.stops, stop])
            self.optimizer.calculate_metrics(route)
            route.updated_at = now

        saved = self._apply(route_id, "add stop to", mutate)
        self.publisher.publish(events.ROUTE_UPDATED, route_payload(saved, stop_id=stop.stop_id))
        return saved

    def remove_stop(self, route_id: str, stop_id: str) -> Route:
        def mutate(route: Route, now: datetime) -> None:
            remaining = [stop for stop in route.stops if stop.stop_id != stop_id]
            if len(remaining) == len(route.stops):
                raise NotFound("route stop", stop_id)
            route.stops = renumber(remaining)
            self.optimizer.calculate_metrics(route)
            route.updated_at = now

        saved = self._apply(route_id, "remove stop from", mutate)
        self.publisher.publish(events.ROUTE_UPDATED, route_payload(saved, stop_id=stop_id))
        return saved

    def optimize_route(self, route_id: str) -> Route:
        def mutate(route: Route, now: datetime) -> None:
            self.optimizer.optimize(route, now)
            self.optimizer.calculate_metrics(route)

        saved = self._apply(route_id, "optimize", mutate)
        logger.info(
            f"Optimized route {saved.id}: {saved.metrics.total_distance_km} km, "
            f"fuel {saved.metrics.estimated_fuel_cost}, CO2 {saved.metrics.co2_emissions_kg} kg"
        )
        self.publisher.publish(events.ROUTE_OPTIMIZED, route_payload(saved))
        return saved

    def start(self, route_id: str) -> Route:
        saved = self._transition(route_id, "start", RouteStatus.ACTIVE, RouteStatus.IN_PROGRESS)
        self.publisher.publish(events.ROUTE_STARTED, route_payload(saved))
        return saved

    def complete(self, route_id: str) -> Route:
        saved = self._transition(route_id, "complete", RouteStatus.IN_PROGRESS, RouteStatus.COMPLETED)
        self.publisher.publish(events.ROUTE_COMPLETED, route_payload(saved))
        return saved

    def delete(self, route_id: str) -> Route:
        def mutate(route: Route, now: datetime) -> None:
            if route.status is RouteStatus.IN_PROGRESS:
                raise InvalidStateTransition("route", route.status.value, "delete")
            route.is_deleted = True
            route.updated_at = now

        saved = self._apply(route_id, "delete", mutate)
        logger.info(f"Soft-deleted route {saved.id}")
        return saved

    def _transition(self, route_id: str, operation: str, source: RouteStatus, target: RouteStatus) -> Route:
        def mutate(route: Route, now: datetime) -> None:
            if route.status is not source:
                raise InvalidStateTransition("route", route.status.value, operation)
            route.status = target
            route.updated_at = now

        return self._apply(route_id, operation, mutate)

    def _apply(self, route_id: str, action: str, mutate: Callable[[Route, datetime], None]) -> Route:
        def attempt() -> Route:
            route = self.get(route_id)
            expected = route.version
            mutate(route, self.clock())
            return self.routes.update(route, expected)

        return retry_on_conflict(attempt, description=f"{action} route {route_id}", attempts=self.attempts)


def _newest_first(routes: list[Route]) -> list[Route]:
    dated = [route for route in routes if route.created_at is not None]
    undated = [route for route in routes if route.created_at is None]
    dated.sort(key=lambda route: route.created_at, reverse=True)
    return dated + undated
