"""Route API schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import (
    DEFAULT_STOP_CITY,
    Coordinates,
    Frequency,
    Route,
    RouteSchedule,
    RouteStatus,
    RouteStop,
    StopAddress,
    StopPriority,
    StopWasteType,
    Weekday,
)
from ..services.routing.service import RouteChanges, RouteDraft


class StopAddressModel(BaseModel):
    street: str
    area: str
    city: str = DEFAULT_STOP_CITY
    zip_code: Optional[str] = None


class RouteStopModel(BaseModel):
    stop_id: Optional[str] = Field(default=None, description="Generated when omitted.")
    address: StopAddressModel
    coordinates: List[float] = Field(..., description="[longitude, latitude]")
    customer_id: Optional[str] = None
    waste_types: List[StopWasteType] = Field(default_factory=lambda: [StopWasteType.GENERAL])
    estimated_quantity: float = Field(10.0, gt=0)
    priority: StopPriority = StopPriority.MEDIUM
    notes: Optional[str] = Field(default=None, max_length=300)
    order: Optional[int] = Field(default=None, ge=1, description="Defaults to the position in the submitted list.")

    def to_domain(self, default_order: int = 1) -> RouteStop:
        return RouteStop(
            stop_id=self.stop_id or uuid.uuid4().hex,
            address=StopAddress(
                street=self.address.street,
                area=self.address.area,
                city=self.address.city,
                zip_code=self.address.zip_code,
            ),
            coordinates=Coordinates.from_pair(self.coordinates),
            customer_id=self.customer_id,
            waste_types=tuple(self.waste_types),
            estimated_quantity=self.estimated_quantity,
            priority=self.priority,
            notes=self.notes,
            order=self.order or default_order,
        )

    @classmethod
    def from_domain(cls, stop: RouteStop) -> "RouteStopModel":
        return cls(
            stop_id=stop.stop_id,
            address=StopAddressModel(
                street=stop.address.street,
                area=stop.address.area,
                city=stop.address.city,
                zip_code=stop.address.zip_code,
            ),
            coordinates=stop.coordinates.as_pair(),
            customer_id=stop.customer_id,
            waste_types=list(stop.waste_types),
            estimated_quantity=stop.estimated_quantity,
            priority=stop.priority,
            notes=stop.notes,
            order=stop.order,
        )


def _stops(models: List[RouteStopModel]) -> tuple[RouteStop, ...]:
    return tuple(model.to_domain(default_order=index) for index, model in enumerate(models, start=1))


class ScheduleModel(BaseModel):
    frequency: Frequency = Frequency.WEEKLY
    days: List[Weekday] = Field(default_factory=list)
    start_time: str = Field("08:00", description="HH:MM")
    estimated_duration: int = Field(240, ge=30, description="Minutes")

    def to_domain(self) -> RouteSchedule:
        return RouteSchedule(
            frequency=self.frequency,
            days=tuple(self.days),
            start_time=self.start_time,
            estimated_duration_min=self.estimated_duration,
        )


class CreateRouteRequest(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    schedule: ScheduleModel = Field(default_factory=ScheduleModel)
    locations: List[RouteStopModel] = Field(default_factory=list)
    status: RouteStatus = RouteStatus.ACTIVE

    def to_draft(self) -> RouteDraft:
        return RouteDraft(
            name=self.name,
            description=self.description,
            schedule=self.schedule.to_domain(),
            stops=_stops(self.locations),
            status=self.status,
        )


class UpdateRouteRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    schedule: Optional[ScheduleModel] = None
    locations: Optional[List[RouteStopModel]] = None
    status: Optional[RouteStatus] = None

    def to_changes(self) -> RouteChanges:
        return RouteChanges(
            name=self.name,
            description=self.description,
            schedule=self.schedule.to_domain() if self.schedule else None,
            stops=_stops(self.locations) if self.locations is not None else None,
            status=self.status,
        )


class AssignRouteRequest(BaseModel):
    driver_id: str


class RouteMetricsModel(BaseModel):
    total_distance: float
    estimated_fuel_cost: int
    co2_emissions: float


class RouteResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: str
    assigned_driver: Optional[str] = None
    schedule: ScheduleModel
    locations: List[RouteStopModel]
    location_count: int
    total_estimated_quantity: float
    metrics: RouteMetricsModel
    last_optimized: Optional[datetime] = None
    next_scheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_domain(cls, route: Route, next_scheduled_at: datetime | None = None) -> "RouteResponse":
        return cls(
            id=route.id,
            name=route.name,
            description=route.description,
            status=route.status.value,
            assigned_driver=route.assigned_driver,
            schedule=ScheduleModel(
                frequency=route.schedule.frequency,
                days=list(route.schedule.days),
                start_time=route.schedule.start_time,
                estimated_duration=route.schedule.estimated_duration_min,
            ),
            locations=[RouteStopModel.from_domain(stop) for stop in route.stops],
            location_count=route.location_count,
            total_estimated_quantity=route.total_estimated_quantity,
            metrics=RouteMetricsModel(
                total_distance=route.metrics.total_distance_km,
                estimated_fuel_cost=route.metrics.estimated_fuel_cost,
                co2_emissions=route.metrics.co2_emissions_kg,
            ),
            last_optimized=route.last_optimized,
            next_scheduled_at=next_scheduled_at,
            created_at=route.created_at,
            updated_at=route.updated_at,
            version=route.version,
        )
