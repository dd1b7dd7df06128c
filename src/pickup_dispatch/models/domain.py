"""Domain models for pickup requests, routes, vehicles and user references."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from ..errors import ValidationError

HH_MM_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
DEFAULT_COUNTRY = "Nepal"
DEFAULT_STOP_CITY = "Kathmandu"


class RequestStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


MODIFIABLE_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.CONFIRMED})
CANCELLABLE_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.CONFIRMED, RequestStatus.ASSIGNED})

STATUS_DESCRIPTIONS = {
    RequestStatus.PENDING: "Waiting for confirmation",
    RequestStatus.CONFIRMED: "Confirmed by dispatcher",
    RequestStatus.ASSIGNED: "Assigned to driver",
    RequestStatus.IN_PROGRESS: "Collection in progress",
    RequestStatus.COMPLETED: "Collection completed",
    RequestStatus.CANCELLED: "Collection cancelled",
    RequestStatus.RESCHEDULED: "Rescheduled to new date",
}


class TimeSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class RequestPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class WasteCategory(str, Enum):
    ORGANIC = "organic"
    RECYCLABLE = "recyclable"
    ELECTRONIC = "electronic"
    HAZARDOUS = "hazardous"
    GENERAL = "general"
    PLASTIC = "plastic"
    PAPER = "paper"
    GLASS = "glass"
    METAL = "metal"


class StopWasteType(str, Enum):
    ORGANIC = "organic"
    RECYCLABLE = "recyclable"
    HAZARDOUS = "hazardous"
    ELECTRONIC = "electronic"
    GENERAL = "general"


class StopPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RouteStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ACTIVE_ROUTE_STATUSES = frozenset({RouteStatus.ACTIVE, RouteStatus.IN_PROGRESS})


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, value: date) -> "Weekday":
        return list(cls)[value.weekday()]


class VehicleType(str, Enum):
    TRUCK = "truck"
    VAN = "van"
    COMPACTOR = "compactor"
    PICKUP = "pickup"
    OTHER = "other"


class VehicleStatus(str, Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"
    RETIRED = "retired"


class Role(str, Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    DISPATCHER = "dispatcher"
    ADMIN = "admin"


def validate_hh_mm(value: str, field_name: str = "time") -> str:
    if not isinstance(value, str) or not HH_MM_PATTERN.match(value):
        raise ValidationError(f"{field_name} must be in HH:MM format, got '{value}'.")
    return value


def hh_mm_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


@dataclass(slots=True, frozen=True)
class Coordinates:
    """A `[longitude, latitude]` pair in decimal degrees."""

    longitude: float
    latitude: float

    def __post_init__(self) -> None:
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"Longitude {self.longitude} is outside [-180, 180].")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"Latitude {self.latitude} is outside [-90, 90].")

    @classmethod
    def from_pair(cls, pair) -> "Coordinates":
        if pair is None or len(pair) != 2:
            raise ValidationError("Coordinates must be [longitude, latitude].")
        return cls(longitude=float(pair[0]), latitude=float(pair[1]))

    def as_pair(self) -> list[float]:
        return [self.longitude, self.latitude]


@dataclass(slots=True, frozen=True)
class TimeRange:
    start: str
    end: str

    def __post_init__(self) -> None:
        validate_hh_mm(self.start, "start")
        validate_hh_mm(self.end, "end")
        if hh_mm_to_minutes(self.start) >= hh_mm_to_minutes(self.end):
            raise ValidationError(f"Time range start {self.start} must be before end {self.end}.")


@dataclass(slots=True, frozen=True)
class Address:
    """Structured pickup address."""

    street: str
    city: str
    state: str
    zip_code: str
    apartment: Optional[str] = None
    country: str = DEFAULT_COUNTRY
    landmark: Optional[str] = None
    special_instructions: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("street", "city", "state", "zip_code"):
            if not (getattr(self, name) or "").strip():
                raise ValidationError(f"Address {name} is required.")

    @property
    def full_address(self) -> str:
        parts = [self.street]
        if self.apartment:
            parts.append(self.apartment)
        parts.extend([self.city, self.state, self.zip_code])
        if self.country and self.country != DEFAULT_COUNTRY:
            parts.append(self.country)
        return ", ".join(parts)


@dataclass(slots=True, frozen=True)
class WasteItem:
    """One line of a waste manifest."""

    category: WasteCategory
    estimated_weight: float = 0.0
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if self.estimated_weight < 0:
            raise ValidationError(f"Estimated weight must be non-negative, got {self.estimated_weight}.")


@dataclass(slots=True, frozen=True)
class CollectedWaste:
    category: str
    weight: float = 0.0
    notes: str = ""


@dataclass(slots=True, frozen=True)
class CompletionData:
    """Actuals reported by the driver when a pickup is finished."""

    waste_collected: tuple[CollectedWaste, ...] = ()
    total_weight: float = 0.0
    cost: float = 0.0
    notes: str = ""
    photos: tuple[str, ...] = ()


@dataclass(slots=True)
class CollectionRequest:
    """A single customer pickup request and its execution record."""

    id: str
    request_code: str
    customer_id: str
    requested_date: date
    requested_time: TimeSlot
    preferred_time_range: TimeRange
    waste_items: tuple[WasteItem, ...]
    location: Coordinates
    address: Address
    status: RequestStatus = RequestStatus.PENDING
    priority: RequestPriority = RequestPriority.NORMAL
    assigned_driver: Optional[str] = None
    assigned_vehicle: Optional[str] = None
    assigned_route: Optional[str] = None
    actual_collection_time: Optional[datetime] = None
    actual_waste_collected: tuple[CollectedWaste, ...] = ()
    total_weight_collected: Optional[float] = None
    actual_cost: Optional[float] = None
    customer_notes: Optional[str] = None
    driver_notes: Optional[str] = None
    after_photos: tuple[str, ...] = ()
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
    version: int = 0

    @property
    def total_estimated_weight(self) -> float:
        return sum(item.estimated_weight for item in self.waste_items)

    @property
    def status_description(self) -> str:
        return STATUS_DESCRIPTIONS.get(self.status, self.status.value)

    def can_be_modified(self) -> bool:
        return self.status in MODIFIABLE_STATUSES

    def can_be_cancelled(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


@dataclass(slots=True, frozen=True)
class StopAddress:
    street: str
    area: str
    city: str = DEFAULT_STOP_CITY
    zip_code: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.street or "").strip():
            raise ValidationError("Stop street address is required.")
        if not (self.area or "").strip():
            raise ValidationError("Stop area is required.")


@dataclass(slots=True, frozen=True)
class RouteStop:
    """A single location on a route; owned by value by its route."""

    stop_id: str
    address: StopAddress
    coordinates: Coordinates
    waste_types: tuple[StopWasteType, ...] = (StopWasteType.GENERAL,)
    estimated_quantity: float = 10.0
    priority: StopPriority = StopPriority.MEDIUM
    customer_id: Optional[str] = None
    notes: Optional[str] = None
    order: int = 1

    def __post_init__(self) -> None:
        if self.estimated_quantity <= 0:
            raise ValidationError(f"Stop quantity must be positive, got {self.estimated_quantity}.")
        if self.notes and len(self.notes) > 300:
            raise ValidationError("Stop notes cannot exceed 300 characters.")
        if self.order < 1:
            raise ValidationError(f"Stop order must be positive, got {self.order}.")


@dataclass(slots=True, frozen=True)
class RouteSchedule:
    frequency: Frequency = Frequency.WEEKLY
    days: tuple[Weekday, ...] = ()
    start_time: str = "08:00"
    estimated_duration_min: int = 240

    def __post_init__(self) -> None:
        validate_hh_mm(self.start_time, "start_time")
        if self.estimated_duration_min < 30:
            raise ValidationError("Estimated duration must be at least 30 minutes.")


@dataclass(slots=True, frozen=True)
class RouteMetrics:
    total_distance_km: float = 0.0
    estimated_fuel_cost: int = 0
    co2_emissions_kg: float = 0.0


@dataclass(slots=True)
class Route:
    """A multi-stop collection route driven by one driver."""

    id: str
    name: str
    description: Optional[str] = None
    status: RouteStatus = RouteStatus.ACTIVE
    assigned_driver: Optional[str] = None
    schedule: RouteSchedule = field(default_factory=RouteSchedule)
    stops: tuple[RouteStop, ...] = ()
    metrics: RouteMetrics = field(default_factory=RouteMetrics)
    last_optimized: Optional[datetime] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def location_count(self) -> int:
        return len(self.stops)

    @property
    def total_estimated_quantity(self) -> float:
        return sum(stop.estimated_quantity for stop in self.stops)

    def holds_driver(self) -> bool:
        return (
            self.assigned_driver is not None
            and not self.is_deleted
            and self.status in ACTIVE_ROUTE_STATUSES
        )


@dataclass(slots=True)
class Vehicle:
    id: str
    plate_number: str
    model: str
    brand: str
    year: int
    vehicle_type: VehicleType
    capacity_volume_m3: float
    capacity_weight_kg: float
    status: VehicleStatus = VehicleStatus.ACTIVE
    current_location: Optional[Coordinates] = None
    location_updated_at: Optional[datetime] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0


@dataclass(slots=True, frozen=True)
class UserRef:
    """User record owned by the external identity service."""

    id: str
    role: Role
    name: str = ""
    is_active: bool = True


@dataclass(slots=True, frozen=True)
class Actor:
    """Pre-validated caller context supplied by the identity layer."""

    user_id: str
    role: Role
