from datetime import date, datetime, timezone

import pytest

from pickup_dispatch.errors import InvalidDriver, InvalidStateTransition, NotFound, ValidationError
from pickup_dispatch.models.domain import (
    Address,
    CollectedWaste,
    CompletionData,
    Coordinates,
    RequestStatus,
    Role,
    TimeRange,
    TimeSlot,
    UserRef,
    Vehicle,
    VehicleType,
    WasteCategory,
    WasteItem,
)
from pickup_dispatch.services.collections.lifecycle import (
    CollectionRequestLifecycle,
    RequestDraft,
    generate_request_code,
    to_base36,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
LATER = datetime(2026, 3, 2, 11, 30, tzinfo=timezone.utc)


def _draft(**overrides) -> RequestDraft:
    values = dict(
        customer_id="cust-1",
        requested_date=date(2026, 3, 5),
        requested_time=TimeSlot.MORNING,
        preferred_time_range=TimeRange(start="08:00", end="10:00"),
        waste_items=(
            WasteItem(category=WasteCategory.ORGANIC, estimated_weight=5),
            WasteItem(category=WasteCategory.PLASTIC, estimated_weight=3),
        ),
        location=Coordinates(longitude=85.324, latitude=27.7172),
        address=Address(street="Durbar Marg 4", city="Kathmandu", state="Bagmati", zip_code="44600"),
    )
    values.update(overrides)
    return RequestDraft(**values)


def _lifecycle() -> CollectionRequestLifecycle:
    counter = iter(range(1, 1000))
    return CollectionRequestLifecycle(min_lead_days=1, id_factory=lambda: f"req-{next(counter)}")


def _driver(role: Role = Role.DRIVER) -> UserRef:
    return UserRef(id="drv-1", role=role, name="Ram")


def _vehicle(deleted: bool = False) -> Vehicle:
    return Vehicle(
        id="veh-1",
        plate_number="BA 2 KHA 1234",
        model="Dyna",
        brand="Toyota",
        year=2020,
        vehicle_type=VehicleType.TRUCK,
        capacity_volume_m3=8.0,
        capacity_weight_kg=3000.0,
        is_deleted=deleted,
    )


def test_to_base36() -> None:
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"


def test_generate_request_code_format() -> None:
    code = generate_request_code(NOW)
    prefix, stamp, suffix = code.split("-")

    assert prefix == "CR"
    assert stamp == to_base36(int(NOW.timestamp() * 1000)).upper()
    assert len(suffix) == 5
    assert code == code.upper()


def test_create_sums_manifest_weight() -> None:
    request = _lifecycle().create(_draft(), NOW)

    assert request.status is RequestStatus.PENDING
    assert request.total_estimated_weight == 8
    assert request.request_code.startswith("CR-")
    assert request.created_at == NOW
    assert request.status_description == "Waiting for confirmation"


def test_create_rejects_empty_manifest() -> None:
    with pytest.raises(ValidationError):
        _lifecycle().create(_draft(waste_items=()), NOW)


def test_create_rejects_date_before_tomorrow() -> None:
    with pytest.raises(ValidationError):
        _lifecycle().create(_draft(requested_date=date(2026, 3, 2)), NOW)


def test_confirm_stamps_confirmed_at_once() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)

    lifecycle.confirm(request, LATER)

    assert request.status is RequestStatus.CONFIRMED
    assert request.confirmed_at == LATER
    with pytest.raises(InvalidStateTransition):
        lifecycle.confirm(request, LATER)


def test_modify_recomputes_manifest_weight() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)

    lifecycle.modify(
        request,
        LATER,
        waste_items=[WasteItem(category=WasteCategory.GLASS, estimated_weight=12.5)],
        customer_notes="Gate code 12",
    )

    assert request.total_estimated_weight == 12.5
    assert request.customer_notes == "Gate code 12"
    assert request.updated_at == LATER


def test_modify_rejects_empty_manifest_without_changes() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)

    with pytest.raises(ValidationError):
        lifecycle.modify(request, LATER, waste_items=[], customer_notes="ignored")

    assert request.customer_notes is None
    assert request.total_estimated_weight == 8


def test_assign_requires_confirmed_status() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)

    with pytest.raises(InvalidStateTransition):
        lifecycle.assign_to_driver(request, _driver(), _vehicle(), LATER)

    assert request.status is RequestStatus.PENDING
    assert request.assigned_driver is None


def test_assign_sets_driver_vehicle_and_scheduled_at() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    lifecycle.confirm(request, NOW)

    lifecycle.assign_to_driver(request, _driver(), _vehicle(), LATER, route_id="route-9")

    assert request.status is RequestStatus.ASSIGNED
    assert request.assigned_driver == "drv-1"
    assert request.assigned_vehicle == "veh-1"
    assert request.assigned_route == "route-9"
    assert request.scheduled_at == LATER


def test_assign_rejects_non_driver() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    lifecycle.confirm(request, NOW)

    with pytest.raises(InvalidDriver):
        lifecycle.assign_to_driver(request, _driver(Role.CUSTOMER), None, LATER)

    assert request.status is RequestStatus.CONFIRMED


def test_assign_rejects_deleted_vehicle() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    lifecycle.confirm(request, NOW)

    with pytest.raises(NotFound):
        lifecycle.assign_to_driver(request, _driver(), _vehicle(deleted=True), LATER)

    assert request.status is RequestStatus.CONFIRMED


def test_complete_records_actuals() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    lifecycle.confirm(request, NOW)
    lifecycle.assign_to_driver(request, _driver(), None, NOW)
    lifecycle.start(request, NOW)

    lifecycle.mark_completed(
        request,
        CompletionData(
            waste_collected=(CollectedWaste(category="organic", weight=6.2),),
            total_weight=6.2,
            cost=450.0,
            notes="Bins were full",
        ),
        LATER,
    )

    assert request.status is RequestStatus.COMPLETED
    assert request.actual_collection_time == LATER
    assert request.completed_at == LATER
    assert request.total_weight_collected == 6.2
    assert request.actual_cost == 450.0


def test_complete_without_data_defaults_to_zero() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    lifecycle.confirm(request, NOW)
    lifecycle.assign_to_driver(request, _driver(), None, NOW)
    lifecycle.start(request, NOW)

    lifecycle.mark_completed(request, None, LATER)

    assert request.total_weight_collected == 0.0
    assert request.actual_cost == 0.0
    assert request.actual_waste_collected == ()


def test_cancel_uses_default_reason() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)

    lifecycle.cancel(request, None, LATER)

    assert request.status is RequestStatus.CANCELLED
    assert request.cancellation_reason == "Cancelled by customer"
    assert request.cancelled_at == LATER


def test_cancel_rejected_once_in_progress() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    lifecycle.confirm(request, NOW)
    lifecycle.assign_to_driver(request, _driver(), None, NOW)
    lifecycle.start(request, NOW)

    with pytest.raises(InvalidStateTransition):
        lifecycle.cancel(request, "too late", LATER)

    assert request.status is RequestStatus.IN_PROGRESS


def test_reschedule_links_both_requests() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    lifecycle.confirm(request, NOW)

    created = lifecycle.reschedule(request, date(2026, 3, 9), TimeSlot.AFTERNOON, LATER)

    assert request.status is RequestStatus.RESCHEDULED
    assert created.status is RequestStatus.PENDING
    assert request.rescheduled_to == created.id
    assert created.rescheduled_from == request.id
    assert created.id != request.id
    assert created.request_code != request.request_code
    assert created.waste_items == request.waste_items
    assert created.location == request.location
    assert created.address == request.address
    assert created.customer_id == request.customer_id
    assert created.requested_date == date(2026, 3, 9)
    assert created.requested_time is TimeSlot.AFTERNOON
    assert created.confirmed_at is None
    assert created.version == 0


def test_reschedule_validates_new_date() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)

    with pytest.raises(ValidationError):
        lifecycle.reschedule(request, date(2026, 3, 1), TimeSlot.MORNING, NOW)

    assert request.status is RequestStatus.PENDING
    assert request.rescheduled_to is None


def test_rate_only_completed_requests() -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)

    with pytest.raises(InvalidStateTransition):
        lifecycle.rate(request, 5, None, LATER)

    lifecycle.confirm(request, NOW)
    lifecycle.assign_to_driver(request, _driver(), None, NOW)
    lifecycle.start(request, NOW)
    lifecycle.mark_completed(request, None, NOW)

    with pytest.raises(ValidationError):
        lifecycle.rate(request, 6, None, LATER)
    lifecycle.rate(request, 4, "Friendly crew", LATER)

    assert request.customer_rating == 4
    assert request.customer_feedback == "Friendly crew"


ALL_OPERATIONS = ("confirm", "assign", "start", "complete", "cancel", "reschedule")

ALLOWED = {
    RequestStatus.PENDING: {"confirm": RequestStatus.CONFIRMED, "cancel": RequestStatus.CANCELLED, "reschedule": RequestStatus.RESCHEDULED},
    RequestStatus.CONFIRMED: {
        "assign": RequestStatus.ASSIGNED,
        "cancel": RequestStatus.CANCELLED,
        "reschedule": RequestStatus.RESCHEDULED,
    },
    RequestStatus.ASSIGNED: {"start": RequestStatus.IN_PROGRESS, "cancel": RequestStatus.CANCELLED},
    RequestStatus.IN_PROGRESS: {"complete": RequestStatus.COMPLETED},
    RequestStatus.COMPLETED: {},
    RequestStatus.CANCELLED: {},
    RequestStatus.RESCHEDULED: {},
}


def _run(lifecycle: CollectionRequestLifecycle, request, operation: str) -> None:
    if operation == "confirm":
        lifecycle.confirm(request, LATER)
    elif operation == "assign":
        lifecycle.assign_to_driver(request, _driver(), None, LATER)
    elif operation == "start":
        lifecycle.start(request, LATER)
    elif operation == "complete":
        lifecycle.mark_completed(request, None, LATER)
    elif operation == "cancel":
        lifecycle.cancel(request, None, LATER)
    elif operation == "reschedule":
        lifecycle.reschedule(request, date(2026, 3, 9), TimeSlot.EVENING, LATER)


@pytest.mark.parametrize("status", list(RequestStatus))
@pytest.mark.parametrize("operation", ALL_OPERATIONS)
def test_every_operation_follows_one_edge_or_fails_cleanly(status: RequestStatus, operation: str) -> None:
    lifecycle = _lifecycle()
    request = lifecycle.create(_draft(), NOW)
    request.status = status

    expected = ALLOWED[status].get(operation)
    if expected is None:
        with pytest.raises(InvalidStateTransition):
            _run(lifecycle, request, operation)
        assert request.status is status
    else:
        _run(lifecycle, request, operation)
        assert request.status is expected
