"""Vehicle registry."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Callable

from ...errors import NotFound, ValidationError
from ...models.domain import Coordinates, Vehicle, VehicleStatus, VehicleType
from ...persistence.base import DriverVehicleBindings, VehicleRepository
from ..clock import Clock, utc_now
from ..concurrency import retry_on_conflict
from ..geospatial import distance_km

logger = logging.getLogger(__name__)

PLATE_PATTERN = re.compile(r"^[A-Z0-9\s-]+$")
MIN_VEHICLE_YEAR = 1990
DEFAULT_NEAR_DISTANCE_M = 5000.0


@dataclass(slots=True, frozen=True)
class VehicleDraft:
    plate_number: str
    model: str
    brand: str
    year: int
    vehicle_type: VehicleType
    capacity_volume_m3: float
    capacity_weight_kg: float
    status: VehicleStatus = VehicleStatus.ACTIVE


def normalize_plate(value: str) -> str:
    plate = (value or "").strip().upper()
    if not plate or not PLATE_PATTERN.match(plate):
        raise ValidationError(f"Invalid plate number format: '{value}'.")
    return plate


class VehicleService:
    def __init__(
        self,
        vehicles: VehicleRepository,
        bindings: DriverVehicleBindings,
        *,
        clock: Clock | None = None,
        attempts: int | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.vehicles = vehicles
        self.bindings = bindings
        self.clock = clock or utc_now
        self.attempts = attempts
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    def get(self, vehicle_id: str, *, include_deleted: bool = False) -> Vehicle:
        vehicle = self.vehicles.get(vehicle_id)
        if vehicle is None or (vehicle.is_deleted and not include_deleted):
            raise NotFound("vehicle", vehicle_id)
        return vehicle

    def assigned_driver(self, vehicle_id: str) -> str | None:
        return self.bindings.driver_for_vehicle(vehicle_id)

    def list(self, *, available_only: bool = False, driver_id: str | None = None) -> list[Vehicle]:
        """Non-deleted vehicles; ``available_only`` keeps active, unbound ones."""

        vehicles = self.vehicles.list()
        if driver_id is not None:
            bound = self.bindings.vehicle_for_driver(driver_id)
            vehicles = [vehicle for vehicle in vehicles if vehicle.id == bound]
        if available_only:
            vehicles = [
                vehicle
                for vehicle in vehicles
                if vehicle.status is VehicleStatus.ACTIVE and self.bindings.driver_for_vehicle(vehicle.id) is None
            ]
        return vehicles

    def vehicles_near(self, location: Coordinates, max_distance_m: float = DEFAULT_NEAR_DISTANCE_M) -> list[Vehicle]:
        """Vehicles last reported within ``max_distance_m``, nearest first."""

        limit_km = max_distance_m / 1000.0
        ranked: list[tuple[float, Vehicle]] = []
        for vehicle in self.vehicles.list():
            if vehicle.current_location is None:
                continue
            distance = distance_km(location, vehicle.current_location)
            if distance <= limit_km:
                ranked.append((distance, vehicle))
        ranked.sort(key=lambda item: item[0])
        return [vehicle for _, vehicle in ranked]

    def create(self, draft: VehicleDraft) -> Vehicle:
        now = self.clock()
        if not MIN_VEHICLE_YEAR <= draft.year <= now.year + 1:
            raise ValidationError(f"Year must be between {MIN_VEHICLE_YEAR} and {now.year + 1}, got {draft.year}.")
        if draft.capacity_volume_m3 < 0 or draft.capacity_weight_kg < 0:
            raise ValidationError("Vehicle capacity must be non-negative.")
        for name in ("model", "brand"):
            if not (getattr(draft, name) or "").strip():
                raise ValidationError(f"Vehicle {name} is required.")

        vehicle = Vehicle(
            id=self._new_id(),
            plate_number=normalize_plate(draft.plate_number),
            model=draft.model.strip(),
            brand=draft.brand.strip(),
            year=draft.year,
            vehicle_type=draft.vehicle_type,
            capacity_volume_m3=draft.capacity_volume_m3,
            capacity_weight_kg=draft.capacity_weight_kg,
            status=draft.status,
            created_at=now,
            updated_at=now,
        )
        saved = self.vehicles.add(vehicle)
        logger.info(f"Registered vehicle {saved.plate_number} ({saved.vehicle_type.value})")
        return saved

    def update_location(self, vehicle_id: str, location: Coordinates) -> Vehicle:
        def attempt() -> Vehicle:
            vehicle = self.get(vehicle_id)
            expected = vehicle.version
            now = self.clock()
            vehicle.current_location = location
            vehicle.location_updated_at = now
            vehicle.updated_at = now
            return self.vehicles.update(vehicle, expected)

        saved = retry_on_conflict(attempt, description=f"update location of vehicle {vehicle_id}", attempts=self.attempts)
        logger.debug(f"Vehicle {saved.plate_number} reported at {location.as_pair()}")
        return saved

    def delete(self, vehicle_id: str) -> Vehicle:
        """Release any driver bound to a vehicle, then soft-delete it.

        The binding is released again after the delete lands so a bind that
        raced the delete cannot leave a driver holding a deleted vehicle.
        """

        self.get(vehicle_id)
        self._release(vehicle_id)

        def attempt() -> Vehicle:
            vehicle = self.get(vehicle_id)
            expected = vehicle.version
            vehicle.is_deleted = True
            vehicle.updated_at = self.clock()
            return self.vehicles.update(vehicle, expected)

        saved = retry_on_conflict(attempt, description=f"delete vehicle {vehicle_id}", attempts=self.attempts)
        self._release(vehicle_id)
        logger.info(f"Deleted vehicle {saved.plate_number}")
        return saved

    def _release(self, vehicle_id: str) -> None:
        released = self.bindings.release_vehicle(vehicle_id)
        if released:
            logger.info(f"Released driver {released} from vehicle {vehicle_id}")
