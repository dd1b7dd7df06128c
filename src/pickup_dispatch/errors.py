"""Error taxonomy shared by services, repositories and the HTTP layer."""

from __future__ import annotations


class PickupError(Exception):
    """Base class for every condition raised by the dispatch core."""


class ValidationError(PickupError, ValueError):
    """Malformed input: bad coordinate, missing field, out-of-range value."""


class InvalidStateTransition(PickupError):
    """A lifecycle guard rejected the requested operation."""

    def __init__(self, entity: str, current_status: str, operation: str) -> None:
        self.entity = entity
        self.current_status = current_status
        self.operation = operation
        super().__init__(f"Cannot {operation} {entity} in status '{current_status}'.")


class NotFound(PickupError):
    """Referenced entity does not exist or is soft-deleted."""

    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity.capitalize()} '{identifier}' not found.")


class ConstraintViolation(PickupError):
    """A cross-entity business constraint would be broken."""


class InvalidDriver(ConstraintViolation):
    def __init__(self, user_id: str, role: str) -> None:
        self.user_id = user_id
        self.role = role
        super().__init__(f"User '{user_id}' has role '{role}', expected 'driver'.")


class VehicleAlreadyAssigned(ConstraintViolation):
    def __init__(self, driver_id: str, vehicle_id: str) -> None:
        self.driver_id = driver_id
        self.vehicle_id = vehicle_id
        super().__init__(
            f"Vehicle binding conflict between driver '{driver_id}' and vehicle '{vehicle_id}'. "
            "Unassign the existing binding first."
        )


class RouteAlreadyAssigned(ConstraintViolation):
    def __init__(self, driver_id: str, route_id: str | None = None) -> None:
        self.driver_id = driver_id
        self.route_id = route_id
        held = f" (route '{route_id}')" if route_id else ""
        super().__init__(f"Driver '{driver_id}' already has an active route{held}.")


class DuplicateRequestCode(ConstraintViolation):
    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Request code '{code}' is already in use.")


class ConcurrentModification(PickupError):
    """A conditional write lost the race; retry with a fresh read."""

    def __init__(self, entity: str, identifier: str, expected_version: int | None = None) -> None:
        self.entity = entity
        self.identifier = identifier
        self.expected_version = expected_version
        super().__init__(f"{entity.capitalize()} '{identifier}' was modified concurrently.")


class InfrastructureError(PickupError):
    """Storage or another backing service is unavailable."""
