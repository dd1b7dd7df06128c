from datetime import date, datetime, timezone

import pytest

from pickup_dispatch.errors import ConcurrentModification, DuplicateRequestCode, InvalidStateTransition, NotFound
from pickup_dispatch.models.domain import (
    Address,
    Coordinates,
    RequestStatus,
    Role,
    TimeRange,
    TimeSlot,
    UserRef,
    WasteCategory,
    WasteItem,
)
from pickup_dispatch.persistence.base import RequestQuery
from pickup_dispatch.persistence.memory import InMemoryRequestRepository, InMemoryUserDirectory
from pickup_dispatch.services.collections.lifecycle import CollectionRequestLifecycle, RequestDraft
from pickup_dispatch.services.collections.service import CollectionService, CustomerStats, RequestChanges
from pickup_dispatch.services.notifications import DirectoryRecipientResolver, EventPublisher, RecordingSink
from pickup_dispatch.services.notifications import events

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _draft(customer_id: str = "cust-1", requested_date: date = date(2026, 3, 5)) -> RequestDraft:
    return RequestDraft(
        customer_id=customer_id,
        requested_date=requested_date,
        requested_time=TimeSlot.MORNING,
        preferred_time_range=TimeRange(start="08:00", end="10:00"),
        waste_items=(
            WasteItem(category=WasteCategory.ORGANIC, estimated_weight=5),
            WasteItem(category=WasteCategory.PLASTIC, estimated_weight=3),
        ),
        location=Coordinates(longitude=85.324, latitude=27.7172),
        address=Address(street="Durbar Marg 4", city="Kathmandu", state="Bagmati", zip_code="44600"),
    )


def _users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(
        [
            UserRef(id="disp-1", role=Role.DISPATCHER, name="Sita"),
            UserRef(id="admin-1", role=Role.ADMIN, name="Hari"),
            UserRef(id="admin-2", role=Role.ADMIN, name="Gone", is_active=False),
            UserRef(id="drv-1", role=Role.DRIVER, name="Ram"),
        ]
    )


def _service(repo=None, lifecycle=None, sink: RecordingSink | None = None, attempts: int = 3) -> CollectionService:
    return CollectionService(
        repo or InMemoryRequestRepository(),
        EventPublisher([sink or RecordingSink()]),
        DirectoryRecipientResolver(_users(), roles=("dispatcher", "admin")),
        lifecycle=lifecycle or CollectionRequestLifecycle(min_lead_days=1),
        clock=lambda: NOW,
        attempts=attempts,
    )


def test_create_persists_and_notifies_dispatchers() -> None:
    sink = RecordingSink()
    service = _service(sink=sink)

    created = service.create_request(_draft())

    assert service.get_request(created.id).total_estimated_weight == 8
    [payload] = sink.named(events.PICKUP_SCHEDULED)
    assert payload["request_code"] == created.request_code
    assert sorted(payload["recipients"]) == ["admin-1", "disp-1"]


def test_create_retries_when_code_collides() -> None:
    codes = iter(["CR-SAME-00000", "CR-SAME-00000", "CR-OTHER-11111"])
    lifecycle = CollectionRequestLifecycle(min_lead_days=1, code_factory=lambda now: next(codes))
    service = _service(lifecycle=lifecycle)

    first = service.create_request(_draft())
    second = service.create_request(_draft())

    assert first.request_code == "CR-SAME-00000"
    assert second.request_code == "CR-OTHER-11111"


def test_create_gives_up_after_repeated_code_collisions(monkeypatch: pytest.MonkeyPatch) -> None:
    from pickup_dispatch.config import settings

    monkeypatch.setattr(settings, "request_code_attempts", 2)
    lifecycle = CollectionRequestLifecycle(min_lead_days=1, code_factory=lambda now: "CR-FIXED-00000")
    service = _service(lifecycle=lifecycle)
    service.create_request(_draft())

    with pytest.raises(DuplicateRequestCode):
        service.create_request(_draft())


def test_get_unknown_request_raises_not_found() -> None:
    with pytest.raises(NotFound):
        _service().get_request("missing")


def test_modify_updates_manifest_and_version() -> None:
    service = _service()
    created = service.create_request(_draft())

    updated = service.modify(
        created.id,
        RequestChanges(waste_items=(WasteItem(category=WasteCategory.METAL, estimated_weight=20),)),
    )

    assert updated.total_estimated_weight == 20
    assert updated.version == created.version + 1


class _RacingRepository(InMemoryRequestRepository):
    """Loses the first ``losses`` conditional writes to a simulated competitor."""

    def __init__(self, losses: int) -> None:
        super().__init__()
        self.losses = losses
        self.update_calls = 0

    def update(self, request, expected_version):
        self.update_calls += 1
        if self.losses > 0:
            self.losses -= 1
            raise ConcurrentModification("collection request", request.id, expected_version)
        return super().update(request, expected_version)


def test_lost_race_is_retried_with_fresh_read() -> None:
    repo = _RacingRepository(losses=2)
    service = _service(repo=repo, attempts=3)
    created = service.create_request(_draft())

    confirmed = service.confirm(created.id)

    assert confirmed.status is RequestStatus.CONFIRMED
    assert repo.update_calls == 3


def test_lost_race_surfaces_after_bounded_attempts() -> None:
    repo = _RacingRepository(losses=5)
    service = _service(repo=repo, attempts=3)
    created = service.create_request(_draft())

    with pytest.raises(ConcurrentModification):
        service.confirm(created.id)

    assert repo.update_calls == 3
    assert service.get_request(created.id).status is RequestStatus.PENDING


def test_guard_failures_are_not_retried() -> None:
    repo = _RacingRepository(losses=0)
    service = _service(repo=repo)
    created = service.create_request(_draft())

    with pytest.raises(InvalidStateTransition):
        service.start(created.id)

    assert repo.update_calls == 0


def test_cancel_without_driver_notifies_dispatchers() -> None:
    sink = RecordingSink()
    service = _service(sink=sink)
    created = service.create_request(_draft())

    cancelled = service.cancel(created.id)

    [payload] = sink.named(events.PICKUP_CANCELLED)
    assert cancelled.cancellation_reason == "Cancelled by customer"
    assert payload["reason"] == "Cancelled by customer"
    assert sorted(payload["recipients"]) == ["admin-1", "disp-1"]


def test_reschedule_saves_pair_atomically() -> None:
    sink = RecordingSink()
    service = _service(sink=sink)
    created = service.create_request(_draft())
    service.confirm(created.id)

    original, successor = service.reschedule(created.id, date(2026, 3, 10), TimeSlot.EVENING)

    assert service.get_request(original.id).status is RequestStatus.RESCHEDULED
    stored = service.get_request(successor.id)
    assert stored.status is RequestStatus.PENDING
    assert stored.waste_items == original.waste_items
    assert stored.rescheduled_from == original.id
    assert service.get_request(original.id).rescheduled_to == successor.id
    assert len(sink.named(events.PICKUP_RESCHEDULED)) == 1


def test_reschedule_chain_walks_from_any_member() -> None:
    service = _service()
    first = service.create_request(_draft())
    _, second = service.reschedule(first.id, date(2026, 3, 10), TimeSlot.EVENING)
    _, third = service.reschedule(second.id, date(2026, 3, 12), TimeSlot.MORNING)

    chain = service.reschedule_chain(second.id)

    assert [item.id for item in chain] == [first.id, second.id, third.id]


def test_upcoming_pickups_only_lists_active_future_requests() -> None:
    service = _service()
    later = service.create_request(_draft(requested_date=date(2026, 3, 20)))
    sooner = service.create_request(_draft(requested_date=date(2026, 3, 4)))
    pending = service.create_request(_draft(requested_date=date(2026, 3, 6)))
    other_customer = service.create_request(_draft(customer_id="cust-2"))
    for request in (later, sooner, other_customer):
        service.confirm(request.id)

    upcoming = service.upcoming_pickups("cust-1")

    assert [item.id for item in upcoming] == [sooner.id, later.id]
    assert pending.id not in {item.id for item in upcoming}


def test_list_requests_paginates_newest_date_first() -> None:
    service = _service()
    for day in (4, 6, 8):
        service.create_request(_draft(requested_date=date(2026, 3, day)))

    items, total = service.list_requests(RequestQuery(customer_id="cust-1", page=1, limit=2))

    assert total == 3
    assert [item.requested_date.day for item in items] == [8, 6]


def test_rate_completed_request() -> None:
    service = _service()
    created = service.create_request(_draft())
    repo = service.requests
    request = repo.get(created.id)
    request.status = RequestStatus.COMPLETED
    repo.update(request, request.version)

    rated = service.rate(created.id, 5, "Spotless")

    assert rated.customer_rating == 5


def _finish(service: CollectionService, request_id: str, weight: float, rating: int | None = None) -> None:
    request = service.requests.get(request_id)
    request.status = RequestStatus.COMPLETED
    request.total_weight_collected = weight
    request.customer_rating = rating
    service.requests.update(request, request.version)


def test_customer_stats_summarises_every_request() -> None:
    service = _service()
    first = service.create_request(_draft())
    second = service.create_request(_draft())
    third = service.create_request(_draft())
    service.create_request(_draft(customer_id="cust-2"))
    _finish(service, first.id, 6.5, rating=5)
    _finish(service, second.id, 3.5, rating=2)
    service.cancel(third.id)

    stats = service.customer_stats("cust-1")

    assert stats == CustomerStats(
        total_requests=3,
        completed_requests=2,
        total_waste_collected=10.0,
        average_rating=3.5,
    )


def test_customer_stats_reads_past_first_page(monkeypatch: pytest.MonkeyPatch) -> None:
    from pickup_dispatch.services.collections import service as service_module

    monkeypatch.setattr(service_module, "STATS_PAGE_SIZE", 2)
    service = _service()
    for _ in range(5):
        service.create_request(_draft())

    assert service.customer_stats("cust-1").total_requests == 5


def test_customer_stats_without_requests_is_all_zero() -> None:
    assert _service().customer_stats("cust-9") == CustomerStats()
