"""Storage contracts the services depend on.

Every ``update`` is a conditional write: it succeeds only when the stored
``version`` still equals ``expected_version`` and raises
``ConcurrentModification`` otherwise. The returned entity carries the new
version.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol, Sequence

from ..models.domain import (
    CollectionRequest,
    Frequency,
    RequestStatus,
    Role,
    Route,
    RouteStatus,
    UserRef,
    Vehicle,
    Weekday,
)


@dataclass(slots=True, frozen=True)
class RequestQuery:
    customer_id: Optional[str] = None
    driver_id: Optional[str] = None
    statuses: tuple[RequestStatus, ...] = ()
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page: int = 1
    limit: int = 10
    ascending: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(slots=True, frozen=True)
class RouteQuery:
    statuses: tuple[RouteStatus, ...] = ()
    driver_id: Optional[str] = None
    frequency: Optional[Frequency] = None
    day: Optional[Weekday] = None


class RequestRepository(Protocol):
    def get(self, request_id: str) -> CollectionRequest | None:
        ...

    def add(self, request: CollectionRequest) -> CollectionRequest:
        """Insert a new request; raises ``DuplicateRequestCode`` on a code clash."""
        ...

    def update(self, request: CollectionRequest, expected_version: int) -> CollectionRequest:
        ...

    def save_reschedule(
        self,
        original: CollectionRequest,
        expected_version: int,
        created: CollectionRequest,
    ) -> tuple[CollectionRequest, CollectionRequest]:
        """Atomically update ``original`` and insert ``created``; both or neither."""
        ...

    def query(self, query: RequestQuery) -> tuple[list[CollectionRequest], int]:
        ...


class RouteRepository(Protocol):
    def get(self, route_id: str) -> Route | None:
        ...

    def add(self, route: Route) -> Route:
        ...

    def update(self, route: Route, expected_version: int) -> Route:
        """Conditional write; raises ``RouteAlreadyAssigned`` when another
        active route already holds the same driver."""
        ...

    def query(self, query: RouteQuery) -> list[Route]:
        ...

    def find_active_for_driver(self, driver_id: str) -> Route | None:
        ...


class VehicleRepository(Protocol):
    def get(self, vehicle_id: str) -> Vehicle | None:
        ...

    def add(self, vehicle: Vehicle) -> Vehicle:
        ...

    def update(self, vehicle: Vehicle, expected_version: int) -> Vehicle:
        ...

    def list(self, *, include_deleted: bool = False) -> list[Vehicle]:
        ...


class DriverVehicleBindings(Protocol):
    """Authoritative driver -> vehicle table; the reverse link is a lookup."""

    def bind(self, driver_id: str, vehicle_id: str) -> None:
        """Atomically bind; raises ``VehicleAlreadyAssigned`` if either side is taken."""
        ...

    def release_vehicle(self, vehicle_id: str) -> str | None:
        ...

    def vehicle_for_driver(self, driver_id: str) -> str | None:
        ...

    def driver_for_vehicle(self, vehicle_id: str) -> str | None:
        ...


class UserDirectory(Protocol):
    def get(self, user_id: str) -> UserRef | None:
        ...

    def list_by_role(self, roles: Sequence[Role]) -> list[UserRef]:
        ...
