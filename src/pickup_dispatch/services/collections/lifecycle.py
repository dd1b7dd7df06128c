"""State machine governing a single collection request.

Every transition runs its guard before touching the request, so a rejected
operation leaves the request exactly as it was. Code generation and status
timestamps are explicit steps inside each transition.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

from ...config import settings
from ...errors import InvalidDriver, InvalidStateTransition, NotFound, ValidationError
from ...models.domain import (
    Address,
    CollectionRequest,
    CompletionData,
    Coordinates,
    RequestPriority,
    RequestStatus,
    Role,
    TimeRange,
    TimeSlot,
    UserRef,
    Vehicle,
    WasteItem,
)

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase
CODE_SUFFIX_LENGTH = 5


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("Only non-negative integers can be encoded.")
    if number == 0:
        return "0"
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_request_code(now: datetime) -> str:
    """Build a ``CR-<base36 ms timestamp>-<5 random base36>`` code, upper-cased."""

    timestamp = to_base36(int(now.timestamp() * 1000))
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(CODE_SUFFIX_LENGTH))
    return f"CR-{timestamp}-{suffix}".upper()


@dataclass(slots=True, frozen=True)
class RequestDraft:
    """Customer input for a new pickup request."""

    customer_id: str
    requested_date: date
    requested_time: TimeSlot
    preferred_time_range: TimeRange
    waste_items: tuple[WasteItem, ...]
    location: Coordinates
    address: Address
    priority: RequestPriority = RequestPriority.NORMAL
    customer_notes: Optional[str] = None


_STATUS_TIMESTAMPS = {
    RequestStatus.CONFIRMED: "confirmed_at",
    RequestStatus.ASSIGNED: "scheduled_at",
    RequestStatus.COMPLETED: "completed_at",
    RequestStatus.CANCELLED: "cancelled_at",
}


def _enter_status(request: CollectionRequest, status: RequestStatus, now: datetime) -> None:
    request.status = status
    stamp = _STATUS_TIMESTAMPS.get(status)
    if stamp and getattr(request, stamp) is None:
        setattr(request, stamp, now)
    request.updated_at = now


def _require_status(request: CollectionRequest, allowed, operation: str) -> None:
    if request.status not in allowed:
        raise InvalidStateTransition("collection request", request.status.value, operation)


def _require_manifest(items: Sequence[WasteItem]) -> tuple[WasteItem, ...]:
    if not items:
        raise ValidationError("At least one waste type is required.")
    return tuple(items)


class CollectionRequestLifecycle:
    """Transitions from the pickup request state table."""

    def __init__(
        self,
        *,
        min_lead_days: int | None = None,
        id_factory: Callable[[], str] | None = None,
        code_factory: Callable[[datetime], str] | None = None,
    ) -> None:
        self.min_lead_days = settings.min_lead_days if min_lead_days is None else min_lead_days
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._new_code = code_factory or generate_request_code

    def new_code(self, now: datetime) -> str:
        return self._new_code(now)

    def validate_requested_date(self, requested: date, now: datetime) -> None:
        earliest = now.date() + timedelta(days=self.min_lead_days)
        if requested < earliest:
            raise ValidationError(
                f"Requested date {requested.isoformat()} must be on or after {earliest.isoformat()}."
            )

    def create(self, draft: RequestDraft, now: datetime) -> CollectionRequest:
        self.validate_requested_date(draft.requested_date, now)
        return CollectionRequest(
            id=self._new_id(),
            request_code=self._new_code(now),
            customer_id=draft.customer_id,
            requested_date=draft.requested_date,
            requested_time=draft.requested_time,
            preferred_time_range=draft.preferred_time_range,
            waste_items=_require_manifest(draft.waste_items),
            location=draft.location,
            address=draft.address,
            priority=draft.priority,
            customer_notes=draft.customer_notes,
            status=RequestStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def confirm(self, request: CollectionRequest, now: datetime) -> None:
        _require_status(request, {RequestStatus.PENDING}, "confirm")
        _enter_status(request, RequestStatus.CONFIRMED, now)

    def modify(
        self,
        request: CollectionRequest,
        now: datetime,
        *,
        waste_items: Sequence[WasteItem] | None = None,
        customer_notes: str | None = None,
        preferred_time_range: TimeRange | None = None,
    ) -> None:
        if not request.can_be_modified():
            raise InvalidStateTransition("collection request", request.status.value, "modify")
        manifest = _require_manifest(waste_items) if waste_items is not None else None

        if manifest is not None:
            request.waste_items = manifest
        if customer_notes is not None:
            request.customer_notes = customer_notes
        if preferred_time_range is not None:
            request.preferred_time_range = preferred_time_range
        request.updated_at = now

    def assign_to_driver(
        self,
        request: CollectionRequest,
        driver: UserRef,
        vehicle: Vehicle | None,
        now: datetime,
        *,
        route_id: str | None = None,
    ) -> None:
        _require_status(request, {RequestStatus.CONFIRMED}, "assign")
        if driver.role is not Role.DRIVER:
            raise InvalidDriver(driver.id, driver.role.value)
        if vehicle is not None and vehicle.is_deleted:
            raise NotFound("vehicle", vehicle.id)

        request.assigned_driver = driver.id
        request.assigned_vehicle = vehicle.id if vehicle is not None else None
        if route_id is not None:
            request.assigned_route = route_id
        _enter_status(request, RequestStatus.ASSIGNED, now)

    def start(self, request: CollectionRequest, now: datetime) -> None:
        _require_status(request, {RequestStatus.ASSIGNED}, "start")
        _enter_status(request, RequestStatus.IN_PROGRESS, now)

    def mark_completed(self, request: CollectionRequest, data: CompletionData | None, now: datetime) -> None:
        _require_status(request, {RequestStatus.IN_PROGRESS}, "complete")
        data = data or CompletionData()
        if data.total_weight < 0 or data.cost < 0:
            raise ValidationError("Collected weight and cost must be non-negative.")

        request.actual_collection_time = now
        request.actual_waste_collected = tuple(data.waste_collected)
        request.total_weight_collected = data.total_weight
        request.actual_cost = data.cost
        request.driver_notes = data.notes
        request.after_photos = tuple(data.photos)
        _enter_status(request, RequestStatus.COMPLETED, now)

    def cancel(self, request: CollectionRequest, reason: str | None, now: datetime) -> None:
        if not request.can_be_cancelled():
            raise InvalidStateTransition("collection request", request.status.value, "cancel")
        request.cancellation_reason = reason or "Cancelled by customer"
        _enter_status(request, RequestStatus.CANCELLED, now)

    def reschedule(
        self,
        request: CollectionRequest,
        new_date: date,
        new_time: TimeSlot,
        now: datetime,
    ) -> CollectionRequest:
        """Close ``request`` as rescheduled and return its pending successor.

        The successor copies every field except identity, status, status
        timestamps and version, and points back at the original.
        """

        if not request.can_be_modified():
            raise InvalidStateTransition("collection request", request.status.value, "reschedule")
        self.validate_requested_date(new_date, now)

        created = replace(
            request,
            id=self._new_id(),
            request_code=self._new_code(now),
            requested_date=new_date,
            requested_time=new_time,
            status=RequestStatus.PENDING,
            rescheduled_from=request.id,
            rescheduled_to=None,
            created_at=now,
            updated_at=now,
            scheduled_at=None,
            confirmed_at=None,
            completed_at=None,
            cancelled_at=None,
            version=0,
        )

        request.status = RequestStatus.RESCHEDULED
        request.rescheduled_to = created.id
        request.updated_at = now
        logger.debug(f"Request {request.request_code} rescheduled as {created.request_code}")
        return created

    def rate(self, request: CollectionRequest, rating: int, feedback: str | None, now: datetime) -> None:
        _require_status(request, {RequestStatus.COMPLETED}, "rate")
        if not 1 <= rating <= 5:
            raise ValidationError(f"Rating must be between 1 and 5, got {rating}.")
        request.customer_rating = rating
        request.customer_feedback = feedback
        request.updated_at = now
