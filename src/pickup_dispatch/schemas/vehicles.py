"""Vehicle API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Coordinates, Vehicle, VehicleStatus, VehicleType
from ..services.fleet.service import VehicleDraft


class CapacityModel(BaseModel):
    volume: float = Field(..., ge=0, description="Cubic meters")
    weight: float = Field(..., ge=0, description="Kilograms")


class CreateVehicleRequest(BaseModel):
    plate_number: str
    model: str
    brand: str
    year: int
    type: VehicleType
    capacity: CapacityModel
    status: VehicleStatus = VehicleStatus.ACTIVE

    def to_draft(self) -> VehicleDraft:
        return VehicleDraft(
            plate_number=self.plate_number,
            model=self.model,
            brand=self.brand,
            year=self.year,
            vehicle_type=self.type,
            capacity_volume_m3=self.capacity.volume,
            capacity_weight_kg=self.capacity.weight,
            status=self.status,
        )


class AssignVehicleRequest(BaseModel):
    driver_id: str


class UpdateLocationRequest(BaseModel):
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    def to_domain(self) -> Coordinates:
        return Coordinates.from_pair(self.coordinates)


class VehicleResponse(BaseModel):
    id: str
    plate_number: str
    model: str
    brand: str
    year: int
    type: str
    capacity: CapacityModel
    status: str
    assigned_driver: Optional[str] = None
    current_location: Optional[List[float]] = None
    location_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_domain(cls, vehicle: Vehicle, assigned_driver: str | None = None) -> "VehicleResponse":
        return cls(
            id=vehicle.id,
            plate_number=vehicle.plate_number,
            model=vehicle.model,
            brand=vehicle.brand,
            year=vehicle.year,
            type=vehicle.vehicle_type.value,
            capacity=CapacityModel(volume=vehicle.capacity_volume_m3, weight=vehicle.capacity_weight_kg),
            status=vehicle.status.value,
            assigned_driver=assigned_driver,
            current_location=vehicle.current_location.as_pair() if vehicle.current_location else None,
            location_updated_at=vehicle.location_updated_at,
            created_at=vehicle.created_at,
            updated_at=vehicle.updated_at,
            version=vehicle.version,
        )
