"""Process-local repositories used by default and in tests.

Rows are stored as serialized records so callers never share mutable state
with the store; every read hands back a fresh domain object.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, Sequence

from ..errors import (
    ConcurrentModification,
    ConstraintViolation,
    DuplicateRequestCode,
    NotFound,
    RouteAlreadyAssigned,
    VehicleAlreadyAssigned,
)
from ..models.domain import CollectionRequest, Role, Route, UserRef, Vehicle
from .base import RequestQuery, RouteQuery
from .records import (
    request_from_record,
    request_to_record,
    route_from_record,
    route_to_record,
    user_from_record,
    vehicle_from_record,
    vehicle_to_record,
)

logger = logging.getLogger(__name__)


class InMemoryRequestRepository:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[str, dict] = {}
        self._codes: dict[str, str] = {}

    def get(self, request_id: str) -> CollectionRequest | None:
        with self._lock:
            row = self._rows.get(request_id)
            return request_from_record(row) if row else None

    def add(self, request: CollectionRequest) -> CollectionRequest:
        with self._lock:
            self._insert(request)
            return request_from_record(self._rows[request.id])

    def update(self, request: CollectionRequest, expected_version: int) -> CollectionRequest:
        with self._lock:
            self._check_version(request.id, expected_version)
            request.version = expected_version + 1
            self._rows[request.id] = request_to_record(request)
            return request_from_record(self._rows[request.id])

    def save_reschedule(
        self,
        original: CollectionRequest,
        expected_version: int,
        created: CollectionRequest,
    ) -> tuple[CollectionRequest, CollectionRequest]:
        with self._lock:
            self._check_version(original.id, expected_version)
            if created.request_code in self._codes:
                raise DuplicateRequestCode(created.request_code)
            self._insert(created)
            original.version = expected_version + 1
            self._rows[original.id] = request_to_record(original)
            return request_from_record(self._rows[original.id]), request_from_record(self._rows[created.id])

    def query(self, query: RequestQuery) -> tuple[list[CollectionRequest], int]:
        with self._lock:
            items = [request_from_record(row) for row in self._rows.values()]

        matched = [item for item in items if _matches_request(item, query)]
        matched.sort(key=lambda item: item.requested_date, reverse=not query.ascending)
        total = len(matched)
        return matched[query.offset : query.offset + query.limit], total

    def _insert(self, request: CollectionRequest) -> None:
        if request.request_code in self._codes:
            raise DuplicateRequestCode(request.request_code)
        if request.id in self._rows:
            raise ConstraintViolation(f"Collection request '{request.id}' already exists.")
        self._rows[request.id] = request_to_record(request)
        self._codes[request.request_code] = request.id

    def _check_version(self, request_id: str, expected_version: int) -> None:
        row = self._rows.get(request_id)
        if row is None:
            raise NotFound("collection request", request_id)
        if row["version"] != expected_version:
            raise ConcurrentModification("collection request", request_id, expected_version)


def _matches_request(request: CollectionRequest, query: RequestQuery) -> bool:
    if query.customer_id and request.customer_id != query.customer_id:
        return False
    if query.driver_id and request.assigned_driver != query.driver_id:
        return False
    if query.statuses and request.status not in query.statuses:
        return False
    if query.start_date and request.requested_date < query.start_date:
        return False
    if query.end_date and request.requested_date > query.end_date:
        return False
    return True


class InMemoryRouteRepository:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[str, dict] = {}

    def get(self, route_id: str) -> Route | None:
        with self._lock:
            row = self._rows.get(route_id)
            return route_from_record(row) if row else None

    def add(self, route: Route) -> Route:
        with self._lock:
            if route.id in self._rows:
                raise ConstraintViolation(f"Route '{route.id}' already exists.")
            self._check_driver_free(route)
            self._rows[route.id] = route_to_record(route)
            return route_from_record(self._rows[route.id])

    def update(self, route: Route, expected_version: int) -> Route:
        with self._lock:
            row = self._rows.get(route.id)
            if row is None:
                raise NotFound("route", route.id)
            if row["version"] != expected_version:
                raise ConcurrentModification("route", route.id, expected_version)
            self._check_driver_free(route)
            route.version = expected_version + 1
            self._rows[route.id] = route_to_record(route)
            return route_from_record(self._rows[route.id])

    def query(self, query: RouteQuery) -> list[Route]:
        with self._lock:
            routes = [route_from_record(row) for row in self._rows.values()]

        selected = []
        for route in routes:
            if route.is_deleted:
                continue
            if query.statuses and route.status not in query.statuses:
                continue
            if query.driver_id and route.assigned_driver != query.driver_id:
                continue
            if query.frequency and route.schedule.frequency is not query.frequency:
                continue
            if query.day and query.day not in route.schedule.days:
                continue
            selected.append(route)
        return selected

    def find_active_for_driver(self, driver_id: str) -> Route | None:
        with self._lock:
            for row in self._rows.values():
                route = route_from_record(row)
                if route.assigned_driver == driver_id and route.holds_driver():
                    return route
        return None

    def _check_driver_free(self, route: Route) -> None:
        if not route.holds_driver():
            return
        holder = self.find_active_for_driver(route.assigned_driver)
        if holder is not None and holder.id != route.id:
            raise RouteAlreadyAssigned(route.assigned_driver, holder.id)


class InMemoryVehicleRepository:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[str, dict] = {}

    def get(self, vehicle_id: str) -> Vehicle | None:
        with self._lock:
            row = self._rows.get(vehicle_id)
            return vehicle_from_record(row) if row else None

    def add(self, vehicle: Vehicle) -> Vehicle:
        with self._lock:
            for row in self._rows.values():
                if row["plate_number"] == vehicle.plate_number and not row["is_deleted"]:
                    raise ConstraintViolation(f"Plate number '{vehicle.plate_number}' is already registered.")
            self._rows[vehicle.id] = vehicle_to_record(vehicle)
            return vehicle_from_record(self._rows[vehicle.id])

    def update(self, vehicle: Vehicle, expected_version: int) -> Vehicle:
        with self._lock:
            row = self._rows.get(vehicle.id)
            if row is None:
                raise NotFound("vehicle", vehicle.id)
            if row["version"] != expected_version:
                raise ConcurrentModification("vehicle", vehicle.id, expected_version)
            vehicle.version = expected_version + 1
            self._rows[vehicle.id] = vehicle_to_record(vehicle)
            return vehicle_from_record(self._rows[vehicle.id])

    def list(self, *, include_deleted: bool = False) -> list[Vehicle]:
        with self._lock:
            vehicles = [vehicle_from_record(row) for row in self._rows.values()]
        if not include_deleted:
            vehicles = [vehicle for vehicle in vehicles if not vehicle.is_deleted]
        return sorted(vehicles, key=lambda vehicle: vehicle.plate_number)


class InMemoryDriverVehicleBindings:
    """Single driver -> vehicle map; both directions are unique."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_driver: dict[str, str] = {}

    def bind(self, driver_id: str, vehicle_id: str) -> None:
        with self._lock:
            current = self._by_driver.get(driver_id)
            if current is not None and current != vehicle_id:
                raise VehicleAlreadyAssigned(driver_id, current)
            holder = self._holder_of(vehicle_id)
            if holder is not None and holder != driver_id:
                raise VehicleAlreadyAssigned(holder, vehicle_id)
            self._by_driver[driver_id] = vehicle_id

    def release_vehicle(self, vehicle_id: str) -> str | None:
        with self._lock:
            holder = self._holder_of(vehicle_id)
            if holder is not None:
                del self._by_driver[holder]
            return holder

    def vehicle_for_driver(self, driver_id: str) -> str | None:
        with self._lock:
            return self._by_driver.get(driver_id)

    def driver_for_vehicle(self, vehicle_id: str) -> str | None:
        with self._lock:
            return self._holder_of(vehicle_id)

    def _holder_of(self, vehicle_id: str) -> str | None:
        for driver_id, bound in self._by_driver.items():
            if bound == vehicle_id:
                return driver_id
        return None


class InMemoryUserDirectory:
    """Read-only view of users owned by the identity service."""

    def __init__(self, users: Iterable[UserRef] = ()) -> None:
        self._users = {user.id: user for user in users}

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryUserDirectory":
        with path.open("r", encoding="utf-8") as handle:
            rows = json.load(handle)
        users = [user_from_record(row) for row in rows]
        logger.info(f"Loaded {len(users)} users from {path}")
        return cls(users)

    def register(self, user: UserRef) -> None:
        self._users[user.id] = user

    def get(self, user_id: str) -> UserRef | None:
        return self._users.get(user_id)

    def list_by_role(self, roles: Sequence[Role]) -> list[UserRef]:
        wanted = set(roles)
        return [user for user in self._users.values() if user.role in wanted]
