"""Cross-entity assignments between drivers, vehicles, routes and requests.

Each assignment validates every participant before writing, and writes
exactly one record (a binding row, a route or a request). A vehicle binding
is re-validated after it is written and released if the vehicle was deleted
or taken out of service in the meantime.
"""

from __future__ import annotations

import logging

from ...errors import ConstraintViolation, InvalidDriver, InvalidStateTransition, NotFound, RouteAlreadyAssigned
from ...models.domain import CollectionRequest, Role, Route, RouteStatus, UserRef, Vehicle, VehicleStatus
from ...persistence.base import (
    DriverVehicleBindings,
    RequestRepository,
    RouteRepository,
    UserDirectory,
    VehicleRepository,
)
from ..clock import Clock, utc_now
from ..collections.lifecycle import CollectionRequestLifecycle
from ..collections.service import request_payload
from ..concurrency import retry_on_conflict
from ..notifications import events
from ..notifications.events import EventPublisher
from ..routing.service import route_payload

logger = logging.getLogger(__name__)

ASSIGNABLE_ROUTE_STATUSES = frozenset({RouteStatus.ACTIVE, RouteStatus.INACTIVE})


class AssignmentCoordinator:
    def __init__(
        self,
        users: UserDirectory,
        vehicles: VehicleRepository,
        bindings: DriverVehicleBindings,
        routes: RouteRepository,
        requests: RequestRepository,
        publisher: EventPublisher,
        *,
        lifecycle: CollectionRequestLifecycle | None = None,
        clock: Clock | None = None,
        attempts: int | None = None,
    ) -> None:
        self.users = users
        self.vehicles = vehicles
        self.bindings = bindings
        self.routes = routes
        self.requests = requests
        self.publisher = publisher
        self.lifecycle = lifecycle or CollectionRequestLifecycle()
        self.clock = clock or utc_now
        self.attempts = attempts

    def _user(self, user_id: str) -> UserRef:
        user = self.users.get(user_id)
        if user is None:
            raise NotFound("user", user_id)
        return user

    def _driver(self, user_id: str) -> UserRef:
        user = self._user(user_id)
        if user.role is not Role.DRIVER:
            raise InvalidDriver(user.id, user.role.value)
        return user

    def _vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self.vehicles.get(vehicle_id)
        if vehicle is None or vehicle.is_deleted:
            raise NotFound("vehicle", vehicle_id)
        return vehicle

    def _assignable_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self._vehicle(vehicle_id)
        if vehicle.status is not VehicleStatus.ACTIVE:
            raise ConstraintViolation(
                f"Vehicle {vehicle.plate_number} is '{vehicle.status.value}' and cannot be assigned."
            )
        return vehicle

    def _route(self, route_id: str) -> Route:
        route = self.routes.get(route_id)
        if route is None or route.is_deleted:
            raise NotFound("route", route_id)
        return route

    # Vehicles

    def assign_vehicle_to_driver(self, vehicle_id: str, driver_id: str) -> Vehicle:
        driver = self._driver(driver_id)
        vehicle = self._assignable_vehicle(vehicle_id)

        self.bindings.bind(driver.id, vehicle.id)
        # A delete or status change may have landed between the check and the bind.
        try:
            vehicle = self._assignable_vehicle(vehicle_id)
        except (NotFound, ConstraintViolation):
            self.bindings.release_vehicle(vehicle_id)
            logger.warning(f"Vehicle {vehicle_id} changed while binding driver {driver.id}; binding released")
            raise

        logger.info(f"Bound vehicle {vehicle.plate_number} to driver {driver.id}")
        self.publisher.publish(
            events.VEHICLE_ASSIGNED,
            {"vehicle_id": vehicle.id, "plate_number": vehicle.plate_number, "driver_id": driver.id, "recipients": [driver.id]},
        )
        return vehicle

    def unassign_vehicle(self, vehicle_id: str) -> str | None:
        """Release the driver bound to a vehicle, deleted vehicles included."""

        vehicle = self.vehicles.get(vehicle_id)
        if vehicle is None:
            raise NotFound("vehicle", vehicle_id)
        released = self.bindings.release_vehicle(vehicle.id)
        if released is None:
            logger.info(f"Vehicle {vehicle.plate_number} had no driver to release")
            return None

        logger.info(f"Released vehicle {vehicle.plate_number} from driver {released}")
        self.publisher.publish(
            events.VEHICLE_UNASSIGNED,
            {"vehicle_id": vehicle.id, "plate_number": vehicle.plate_number, "driver_id": released, "recipients": [released]},
        )
        return released

    # Routes

    def assign_driver_to_route(self, route_id: str, driver_id: str) -> Route:
        driver = self._driver(driver_id)

        def attempt() -> Route:
            route = self._route(route_id)
            if route.status not in ASSIGNABLE_ROUTE_STATUSES:
                raise InvalidStateTransition("route", route.status.value, "assign a driver to")
            holder = self.routes.find_active_for_driver(driver.id)
            if holder is not None and holder.id != route.id:
                raise RouteAlreadyAssigned(driver.id, holder.id)
            expected = route.version
            route.assigned_driver = driver.id
            route.updated_at = self.clock()
            return self.routes.update(route, expected)

        saved = retry_on_conflict(attempt, description=f"assign driver to route {route_id}", attempts=self.attempts)
        logger.info(f"Route {saved.id} assigned to driver {driver.id}")
        self.publisher.publish(events.ROUTE_ASSIGNED, route_payload(saved))
        return saved

    def unassign_route_driver(self, route_id: str) -> Route:
        released: list[str] = []

        def attempt() -> Route:
            route = self._route(route_id)
            if route.status is RouteStatus.IN_PROGRESS:
                raise InvalidStateTransition("route", route.status.value, "unassign the driver of")
            expected = route.version
            released[:] = [route.assigned_driver] if route.assigned_driver else []
            route.assigned_driver = None
            route.updated_at = self.clock()
            return self.routes.update(route, expected)

        saved = retry_on_conflict(attempt, description=f"unassign driver from route {route_id}", attempts=self.attempts)
        if released:
            logger.info(f"Route {saved.id} released driver {released[0]}")
            self.publisher.publish(events.ROUTE_UNASSIGNED, route_payload(saved, driver_id=released[0], recipients=released))
        return saved

    # Requests

    def assign_request_to_driver(
        self,
        request_id: str,
        driver_id: str,
        vehicle_id: str | None = None,
        route_id: str | None = None,
    ) -> CollectionRequest:
        """Move a confirmed request to ``assigned`` and notify driver and customer once."""

        driver = self._user(driver_id)
        vehicle = None
        if vehicle_id is not None:
            vehicle = self.vehicles.get(vehicle_id)
            if vehicle is None:
                raise NotFound("vehicle", vehicle_id)
        if route_id is not None:
            self._route(route_id)

        def attempt() -> CollectionRequest:
            request = self.requests.get(request_id)
            if request is None:
                raise NotFound("collection request", request_id)
            expected = request.version
            self.lifecycle.assign_to_driver(request, driver, vehicle, self.clock(), route_id=route_id)
            return self.requests.update(request, expected)

        saved = retry_on_conflict(attempt, description=f"assign collection request {request_id}", attempts=self.attempts)
        logger.info(f"Collection request {saved.request_code} assigned to driver {driver.id}")
        payload = request_payload(saved, [driver.id, saved.customer_id])
        payload["assigned_vehicle"] = saved.assigned_vehicle
        payload["assigned_route"] = saved.assigned_route
        self.publisher.publish(events.DRIVER_ASSIGNED, payload)
        return saved
