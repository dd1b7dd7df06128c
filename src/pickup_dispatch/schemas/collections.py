"""Collection request API schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import (
    Address,
    CollectedWaste,
    CollectionRequest,
    CompletionData,
    Coordinates,
    RequestPriority,
    TimeRange,
    TimeSlot,
    WasteCategory,
    WasteItem,
)
from ..services.collections.lifecycle import RequestDraft
from ..services.collections.service import CustomerStats, RequestChanges


class WasteItemModel(BaseModel):
    category: WasteCategory
    estimated_weight: float = Field(0.0, ge=0)
    description: Optional[str] = None

    def to_domain(self) -> WasteItem:
        return WasteItem(category=self.category, estimated_weight=self.estimated_weight, description=self.description)


class TimeRangeModel(BaseModel):
    start: str = Field(..., description="HH:MM")
    end: str = Field(..., description="HH:MM")

    def to_domain(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)


class AddressModel(BaseModel):
    street: str
    apartment: Optional[str] = None
    city: str
    state: str
    zip_code: str
    country: str = "Nepal"
    landmark: Optional[str] = None
    special_instructions: Optional[str] = None

    def to_domain(self) -> Address:
        return Address(
            street=self.street,
            apartment=self.apartment,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            country=self.country,
            landmark=self.landmark,
            special_instructions=self.special_instructions,
        )


class CreateCollectionRequest(BaseModel):
    customer_id: Optional[str] = Field(
        default=None,
        description="Required when a dispatcher books on behalf of a customer; defaults to the caller.",
    )
    requested_date: date
    requested_time: TimeSlot
    preferred_time_range: TimeRangeModel
    waste_types: List[WasteItemModel]
    pickup_location: List[float] = Field(..., description="[longitude, latitude]")
    address: AddressModel
    priority: RequestPriority = RequestPriority.NORMAL
    customer_notes: Optional[str] = Field(default=None, max_length=500)

    def to_draft(self, customer_id: str) -> RequestDraft:
        return RequestDraft(
            customer_id=customer_id,
            requested_date=self.requested_date,
            requested_time=self.requested_time,
            preferred_time_range=self.preferred_time_range.to_domain(),
            waste_items=tuple(item.to_domain() for item in self.waste_types),
            location=Coordinates.from_pair(self.pickup_location),
            address=self.address.to_domain(),
            priority=self.priority,
            customer_notes=self.customer_notes,
        )


class UpdateCollectionRequest(BaseModel):
    waste_types: Optional[List[WasteItemModel]] = None
    customer_notes: Optional[str] = Field(default=None, max_length=500)
    preferred_time_range: Optional[TimeRangeModel] = None

    def to_changes(self) -> RequestChanges:
        return RequestChanges(
            waste_items=tuple(item.to_domain() for item in self.waste_types) if self.waste_types is not None else None,
            customer_notes=self.customer_notes,
            preferred_time_range=self.preferred_time_range.to_domain() if self.preferred_time_range else None,
        )


class AssignCollectionRequest(BaseModel):
    driver_id: str
    vehicle_id: Optional[str] = None
    route_id: Optional[str] = None


class CollectedWasteModel(BaseModel):
    category: str
    weight: float = Field(0.0, ge=0)
    notes: str = ""


class CompleteCollectionRequest(BaseModel):
    waste_collected: List[CollectedWasteModel] = Field(default_factory=list)
    total_weight: float = Field(0.0, ge=0)
    cost: float = Field(0.0, ge=0)
    notes: str = ""
    photos: List[str] = Field(default_factory=list)

    def to_domain(self) -> CompletionData:
        return CompletionData(
            waste_collected=tuple(
                CollectedWaste(category=item.category, weight=item.weight, notes=item.notes)
                for item in self.waste_collected
            ),
            total_weight=self.total_weight,
            cost=self.cost,
            notes=self.notes,
            photos=tuple(self.photos),
        )


class CancelCollectionRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class RescheduleCollectionRequest(BaseModel):
    new_date: date
    new_time: TimeSlot


class RateCollectionRequest(BaseModel):
    rating: int
    feedback: Optional[str] = Field(default=None, max_length=500)


class CollectionRequestResponse(BaseModel):
    id: str
    request_id: str
    customer_id: str
    requested_date: date
    requested_time: str
    preferred_time_range: TimeRangeModel
    waste_types: List[WasteItemModel]
    total_estimated_weight: float
    pickup_location: List[float]
    address: AddressModel
    full_address: str
    status: str
    status_description: str
    priority: str
    assigned_driver: Optional[str] = None
    assigned_vehicle: Optional[str] = None
    assigned_route: Optional[str] = None
    actual_collection_time: Optional[datetime] = None
    actual_waste_collected: List[CollectedWasteModel] = Field(default_factory=list)
    total_weight_collected: Optional[float] = None
    actual_cost: Optional[float] = None
    customer_notes: Optional[str] = None
    driver_notes: Optional[str] = None
    after_photos: List[str] = Field(default_factory=list)
    customer_rating: Optional[int] = None
    customer_feedback: Optional[str] = None
    cancellation_reason: Optional[str] = None
    rescheduled_from: Optional[str] = None
    rescheduled_to: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_domain(cls, request: CollectionRequest) -> "CollectionRequestResponse":
        address = request.address
        return cls(
            id=request.id,
            request_id=request.request_code,
            customer_id=request.customer_id,
            requested_date=request.requested_date,
            requested_time=request.requested_time.value,
            preferred_time_range=TimeRangeModel(
                start=request.preferred_time_range.start, end=request.preferred_time_range.end
            ),
            waste_types=[
                WasteItemModel(category=item.category, estimated_weight=item.estimated_weight, description=item.description)
                for item in request.waste_items
            ],
            total_estimated_weight=request.total_estimated_weight,
            pickup_location=request.location.as_pair(),
            address=AddressModel(
                street=address.street,
                apartment=address.apartment,
                city=address.city,
                state=address.state,
                zip_code=address.zip_code,
                country=address.country,
                landmark=address.landmark,
                special_instructions=address.special_instructions,
            ),
            full_address=address.full_address,
            status=request.status.value,
            status_description=request.status_description,
            priority=request.priority.value,
            assigned_driver=request.assigned_driver,
            assigned_vehicle=request.assigned_vehicle,
            assigned_route=request.assigned_route,
            actual_collection_time=request.actual_collection_time,
            actual_waste_collected=[
                CollectedWasteModel(category=waste.category, weight=waste.weight, notes=waste.notes)
                for waste in request.actual_waste_collected
            ],
            total_weight_collected=request.total_weight_collected,
            actual_cost=request.actual_cost,
            customer_notes=request.customer_notes,
            driver_notes=request.driver_notes,
            after_photos=list(request.after_photos),
            customer_rating=request.customer_rating,
            customer_feedback=request.customer_feedback,
            cancellation_reason=request.cancellation_reason,
            rescheduled_from=request.rescheduled_from,
            rescheduled_to=request.rescheduled_to,
            created_at=request.created_at,
            updated_at=request.updated_at,
            scheduled_at=request.scheduled_at,
            confirmed_at=request.confirmed_at,
            completed_at=request.completed_at,
            cancelled_at=request.cancelled_at,
            version=request.version,
        )


class CollectionListResponse(BaseModel):
    items: List[CollectionRequestResponse]
    page: int
    limit: int
    total: int
    has_next_page: bool


class RescheduleResponse(BaseModel):
    original: CollectionRequestResponse
    created: CollectionRequestResponse


class CustomerStatsResponse(BaseModel):
    customer_id: str
    total_requests: int
    completed_requests: int
    total_waste_collected: float
    average_rating: float

    @classmethod
    def from_domain(cls, customer_id: str, stats: CustomerStats) -> "CustomerStatsResponse":
        return cls(
            customer_id=customer_id,
            total_requests=stats.total_requests,
            completed_requests=stats.completed_requests,
            total_waste_collected=stats.total_waste_collected,
            average_rating=stats.average_rating,
        )
