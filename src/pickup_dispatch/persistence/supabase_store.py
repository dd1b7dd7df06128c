"""Supabase-backed repositories.

Conditional writes filter on ``version`` so PostgREST only touches the row
when nobody else has written it since it was read. The schema these
repositories expect lives in ``sql/schema.sql``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..errors import (
    ConcurrentModification,
    ConstraintViolation,
    DuplicateRequestCode,
    InfrastructureError,
    NotFound,
    RouteAlreadyAssigned,
    VehicleAlreadyAssigned,
)
from ..models.domain import ACTIVE_ROUTE_STATUSES, CollectionRequest, Role, Route, UserRef, Vehicle
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

UNIQUE_VIOLATION = "23505"

REQUESTS_TABLE = "collection_requests"
ROUTES_TABLE = "routes"
VEHICLES_TABLE = "vehicles"
BINDINGS_TABLE = "driver_vehicles"
USERS_TABLE = "users"
RESCHEDULE_FUNCTION = "reschedule_collection_request"


def _execute(query, action: str, on_unique: Optional[Callable[[APIError], Exception]] = None):
    """Run a PostgREST query, translating transport and server failures."""

    try:
        return query.execute()
    except APIError as exc:
        if on_unique is not None and exc.code == UNIQUE_VIOLATION:
            raise on_unique(exc) from exc
        logger.error(f"Supabase rejected {action}: {exc.message}")
        raise InfrastructureError(f"Storage error while trying to {action}.") from exc
    except httpx.HTTPError as exc:
        logger.error(f"Supabase unreachable during {action}: {exc}")
        raise InfrastructureError(f"Storage unavailable while trying to {action}.") from exc


def _first(response) -> Optional[dict[str, Any]]:
    rows = response.data or []
    return rows[0] if rows else None


def _conditional_update(
    client: Client,
    table: str,
    entity: str,
    record: dict[str, Any],
    expected_version: int,
    on_unique: Optional[Callable[[APIError], Exception]] = None,
) -> dict[str, Any]:
    record = {**record, "version": expected_version + 1}
    response = _execute(
        client.table(table).update(record).eq("id", record["id"]).eq("version", expected_version),
        f"update {entity} {record['id']}",
        on_unique,
    )
    row = _first(response)
    if row is not None:
        return row

    existing = _first(_execute(client.table(table).select("id").eq("id", record["id"]).limit(1), f"load {entity}"))
    if existing is None:
        raise NotFound(entity, record["id"])
    logger.info(f"Conditional write on {entity} {record['id']} lost at version {expected_version}")
    raise ConcurrentModification(entity, record["id"], expected_version)


class SupabaseRequestRepository:
    def __init__(self, client: Client) -> None:
        self._client = client

    def get(self, request_id: str) -> CollectionRequest | None:
        response = _execute(
            self._client.table(REQUESTS_TABLE).select("*").eq("id", request_id).limit(1),
            f"load collection request {request_id}",
        )
        row = _first(response)
        return request_from_record(row) if row else None

    def add(self, request: CollectionRequest) -> CollectionRequest:
        response = _execute(
            self._client.table(REQUESTS_TABLE).insert(request_to_record(request)),
            f"insert collection request {request.id}",
            on_unique=lambda exc: DuplicateRequestCode(request.request_code),
        )
        row = _first(response)
        return request_from_record(row) if row else request

    def update(self, request: CollectionRequest, expected_version: int) -> CollectionRequest:
        row = _conditional_update(
            self._client, REQUESTS_TABLE, "collection request", request_to_record(request), expected_version
        )
        return request_from_record(row)

    def save_reschedule(
        self,
        original: CollectionRequest,
        expected_version: int,
        created: CollectionRequest,
    ) -> tuple[CollectionRequest, CollectionRequest]:
        response = _execute(
            self._client.rpc(
                RESCHEDULE_FUNCTION,
                {
                    "original": request_to_record(original),
                    "expected_version": expected_version,
                    "created": request_to_record(created),
                },
            ),
            f"reschedule collection request {original.id}",
            on_unique=lambda exc: DuplicateRequestCode(created.request_code),
        )
        if not response.data:
            if self.get(original.id) is None:
                raise NotFound("collection request", original.id)
            raise ConcurrentModification("collection request", original.id, expected_version)

        saved_original = self.get(original.id)
        saved_created = self.get(created.id)
        if saved_original is None or saved_created is None:
            raise InfrastructureError(f"Reschedule of {original.id} was not readable after commit.")
        return saved_original, saved_created

    def query(self, query: RequestQuery) -> tuple[list[CollectionRequest], int]:
        builder = self._client.table(REQUESTS_TABLE).select("*", count="exact")
        if query.customer_id:
            builder = builder.eq("customer_id", query.customer_id)
        if query.driver_id:
            builder = builder.eq("assigned_driver", query.driver_id)
        if query.statuses:
            builder = builder.in_("status", [status.value for status in query.statuses])
        if query.start_date:
            builder = builder.gte("requested_date", query.start_date.isoformat())
        if query.end_date:
            builder = builder.lte("requested_date", query.end_date.isoformat())
        builder = builder.order("requested_date", desc=not query.ascending).range(
            query.offset, query.offset + query.limit - 1
        )

        response = _execute(builder, "list collection requests")
        items = [request_from_record(row) for row in response.data or []]
        total = response.count if response.count is not None else len(items)
        return items, total


class SupabaseRouteRepository:
    def __init__(self, client: Client) -> None:
        self._client = client

    def get(self, route_id: str) -> Route | None:
        row = _first(_execute(self._client.table(ROUTES_TABLE).select("*").eq("id", route_id).limit(1), "load route"))
        return route_from_record(row) if row else None

    def add(self, route: Route) -> Route:
        response = _execute(
            self._client.table(ROUTES_TABLE).insert(route_to_record(route)),
            f"insert route {route.id}",
            on_unique=lambda exc: self._driver_conflict(route),
        )
        row = _first(response)
        return route_from_record(row) if row else route

    def update(self, route: Route, expected_version: int) -> Route:
        row = _conditional_update(
            self._client,
            ROUTES_TABLE,
            "route",
            route_to_record(route),
            expected_version,
            on_unique=lambda exc: self._driver_conflict(route),
        )
        return route_from_record(row)

    def query(self, query: RouteQuery) -> list[Route]:
        builder = self._client.table(ROUTES_TABLE).select("*").eq("is_deleted", False)
        if query.statuses:
            builder = builder.in_("status", [status.value for status in query.statuses])
        if query.driver_id:
            builder = builder.eq("assigned_driver", query.driver_id)
        response = _execute(builder.order("created_at"), "list routes")

        routes = [route_from_record(row) for row in response.data or []]
        if query.frequency:
            routes = [route for route in routes if route.schedule.frequency is query.frequency]
        if query.day:
            routes = [route for route in routes if query.day in route.schedule.days]
        return routes

    def find_active_for_driver(self, driver_id: str) -> Route | None:
        response = _execute(
            self._client.table(ROUTES_TABLE)
            .select("*")
            .eq("assigned_driver", driver_id)
            .eq("is_deleted", False)
            .in_("status", [status.value for status in ACTIVE_ROUTE_STATUSES])
            .limit(1),
            f"find active route for driver {driver_id}",
        )
        row = _first(response)
        return route_from_record(row) if row else None

    def _driver_conflict(self, route: Route) -> Exception:
        if route.assigned_driver is None:
            return ConstraintViolation(f"Route '{route.id}' already exists.")
        return RouteAlreadyAssigned(route.assigned_driver)


class SupabaseVehicleRepository:
    def __init__(self, client: Client) -> None:
        self._client = client

    def get(self, vehicle_id: str) -> Vehicle | None:
        row = _first(
            _execute(self._client.table(VEHICLES_TABLE).select("*").eq("id", vehicle_id).limit(1), "load vehicle")
        )
        return vehicle_from_record(row) if row else None

    def add(self, vehicle: Vehicle) -> Vehicle:
        response = _execute(
            self._client.table(VEHICLES_TABLE).insert(vehicle_to_record(vehicle)),
            f"insert vehicle {vehicle.plate_number}",
            on_unique=lambda exc: ConstraintViolation(
                f"Plate number '{vehicle.plate_number}' is already registered."
            ),
        )
        row = _first(response)
        return vehicle_from_record(row) if row else vehicle

    def update(self, vehicle: Vehicle, expected_version: int) -> Vehicle:
        row = _conditional_update(self._client, VEHICLES_TABLE, "vehicle", vehicle_to_record(vehicle), expected_version)
        return vehicle_from_record(row)

    def list(self, *, include_deleted: bool = False) -> list[Vehicle]:
        builder = self._client.table(VEHICLES_TABLE).select("*")
        if not include_deleted:
            builder = builder.eq("is_deleted", False)
        response = _execute(builder.order("plate_number"), "list vehicles")
        return [vehicle_from_record(row) for row in response.data or []]


class SupabaseDriverVehicleBindings:
    """Bindings table keyed by ``driver_id`` with a unique ``vehicle_id``."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def bind(self, driver_id: str, vehicle_id: str) -> None:
        current = self.vehicle_for_driver(driver_id)
        if current == vehicle_id:
            return
        if current is not None:
            raise VehicleAlreadyAssigned(driver_id, current)
        _execute(
            self._client.table(BINDINGS_TABLE).insert({"driver_id": driver_id, "vehicle_id": vehicle_id}),
            f"bind vehicle {vehicle_id} to driver {driver_id}",
            on_unique=lambda exc: VehicleAlreadyAssigned(driver_id, vehicle_id),
        )

    def release_vehicle(self, vehicle_id: str) -> str | None:
        response = _execute(
            self._client.table(BINDINGS_TABLE).delete().eq("vehicle_id", vehicle_id),
            f"release vehicle {vehicle_id}",
        )
        row = _first(response)
        return row["driver_id"] if row else None

    def vehicle_for_driver(self, driver_id: str) -> str | None:
        row = _first(
            _execute(
                self._client.table(BINDINGS_TABLE).select("vehicle_id").eq("driver_id", driver_id).limit(1),
                f"load binding for driver {driver_id}",
            )
        )
        return row["vehicle_id"] if row else None

    def driver_for_vehicle(self, vehicle_id: str) -> str | None:
        row = _first(
            _execute(
                self._client.table(BINDINGS_TABLE).select("driver_id").eq("vehicle_id", vehicle_id).limit(1),
                f"load binding for vehicle {vehicle_id}",
            )
        )
        return row["driver_id"] if row else None


class SupabaseUserDirectory:
    def __init__(self, client: Client) -> None:
        self._client = client

    def get(self, user_id: str) -> UserRef | None:
        row = _first(
            _execute(
                self._client.table(USERS_TABLE).select("id, role, name, status").eq("id", user_id).limit(1),
                f"load user {user_id}",
            )
        )
        return user_from_record(row) if row else None

    def list_by_role(self, roles: Sequence[Role]) -> list[UserRef]:
        response = _execute(
            self._client.table(USERS_TABLE).select("id, role, name, status").in_("role", [role.value for role in roles]),
            "list users by role",
        )
        return [user_from_record(row) for row in response.data or []]


def ping(client: Client) -> None:
    """Cheap round trip used by the storage health check."""

    _execute(client.table(REQUESTS_TABLE).select("id").limit(1), "check storage")
