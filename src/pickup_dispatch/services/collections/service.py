"""Command and query handlers for customer pickup requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Optional

from ...config import settings
from ...errors import DuplicateRequestCode, NotFound
from ...models.domain import (
    CollectionRequest,
    CompletionData,
    RequestStatus,
    TimeRange,
    TimeSlot,
    WasteItem,
)
from ...persistence.base import RequestQuery, RequestRepository
from ..clock import Clock, utc_now
from ..concurrency import retry_on_conflict
from ..notifications import events
from ..notifications.events import EventPublisher
from ..notifications.recipients import RecipientResolver
from .lifecycle import CollectionRequestLifecycle, RequestDraft

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = (RequestStatus.CONFIRMED, RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS)
STATS_PAGE_SIZE = 100


@dataclass(slots=True, frozen=True)
class RequestChanges:
    """Customer edits allowed while a request is still modifiable."""

    waste_items: Optional[tuple[WasteItem, ...]] = None
    customer_notes: Optional[str] = None
    preferred_time_range: Optional[TimeRange] = None


@dataclass(slots=True, frozen=True)
class CustomerStats:
    total_requests: int = 0
    completed_requests: int = 0
    total_waste_collected: float = 0.0
    average_rating: float = 0.0


def request_payload(request: CollectionRequest, recipients: list[str]) -> dict[str, Any]:
    return {
        "request_id": request.id,
        "request_code": request.request_code,
        "customer_id": request.customer_id,
        "status": request.status.value,
        "requested_date": request.requested_date.isoformat(),
        "requested_time": request.requested_time.value,
        "assigned_driver": request.assigned_driver,
        "recipients": recipients,
    }


class CollectionService:
    def __init__(
        self,
        requests: RequestRepository,
        publisher: EventPublisher,
        recipients: RecipientResolver,
        *,
        lifecycle: CollectionRequestLifecycle | None = None,
        clock: Clock | None = None,
        attempts: int | None = None,
    ) -> None:
        self.requests = requests
        self.publisher = publisher
        self.recipients = recipients
        self.lifecycle = lifecycle or CollectionRequestLifecycle()
        self.clock = clock or utc_now
        self.attempts = attempts

    # Queries

    def get_request(self, request_id: str) -> CollectionRequest:
        request = self.requests.get(request_id)
        if request is None:
            raise NotFound("collection request", request_id)
        return request

    def list_requests(self, query: RequestQuery) -> tuple[list[CollectionRequest], int]:
        return self.requests.query(query)

    def upcoming_pickups(self, customer_id: str, limit: int = 10) -> list[CollectionRequest]:
        tomorrow = self.clock().date() + timedelta(days=1)
        items, _ = self.requests.query(
            RequestQuery(
                customer_id=customer_id,
                statuses=UPCOMING_STATUSES,
                start_date=tomorrow,
                limit=limit,
                ascending=True,
            )
        )
        return items

    def reschedule_chain(self, request_id: str) -> list[CollectionRequest]:
        """Every request linked to ``request_id`` by reschedules, oldest first."""

        current = self.get_request(request_id)
        seen = {current.id}
        while current.rescheduled_from and current.rescheduled_from not in seen:
            previous = self.requests.get(current.rescheduled_from)
            if previous is None:
                break
            seen.add(previous.id)
            current = previous

        chain = [current]
        while current.rescheduled_to:
            following = self.requests.get(current.rescheduled_to)
            if following is None or following.id in {item.id for item in chain}:
                break
            chain.append(following)
            current = following
        return chain

    def customer_stats(self, customer_id: str) -> CustomerStats:
        """Totals over every request the customer has made.

        ``average_rating`` only counts rated requests and is 0 when none are.
        """

        requests: list[CollectionRequest] = []
        page = 1
        while True:
            items, total = self.requests.query(RequestQuery(customer_id=customer_id, page=page, limit=STATS_PAGE_SIZE))
            requests.extend(items)
            if not items or len(requests) >= total:
                break
            page += 1

        ratings = [request.customer_rating for request in requests if request.customer_rating is not None]
        return CustomerStats(
            total_requests=len(requests),
            completed_requests=sum(1 for request in requests if request.status is RequestStatus.COMPLETED),
            total_waste_collected=sum(request.total_weight_collected or 0.0 for request in requests),
            average_rating=sum(ratings) / len(ratings) if ratings else 0.0,
        )

    # Commands

    def create_request(self, draft: RequestDraft) -> CollectionRequest:
        max_attempts = settings.request_code_attempts
        for attempt in range(1, max_attempts + 1):
            request = self.lifecycle.create(draft, self.clock())
            try:
                saved = self.requests.add(request)
                break
            except DuplicateRequestCode:
                if attempt >= max_attempts:
                    logger.error(f"Request code collided {attempt} times for customer {draft.customer_id}")
                    raise
                logger.warning(f"Request code {request.request_code} already taken, generating another")

        logger.info(f"Created collection request {saved.request_code} for customer {saved.customer_id}")
        self._publish(events.PICKUP_SCHEDULED, saved, self.recipients.dispatchers())
        return saved

    def confirm(self, request_id: str) -> CollectionRequest:
        saved = self._apply(request_id, "confirm", self.lifecycle.confirm)
        self._publish(events.PICKUP_CONFIRMED, saved, [saved.customer_id])
        return saved

    def modify(self, request_id: str, changes: RequestChanges) -> CollectionRequest:
        def mutate(request, now):
            self.lifecycle.modify(
                request,
                now,
                waste_items=changes.waste_items,
                customer_notes=changes.customer_notes,
                preferred_time_range=changes.preferred_time_range,
            )

        saved = self._apply(request_id, "modify", mutate)
        self._publish(events.PICKUP_UPDATED, saved, self.recipients.dispatchers())
        return saved

    def start(self, request_id: str) -> CollectionRequest:
        saved = self._apply(request_id, "start", self.lifecycle.start)
        self._publish(events.PICKUP_STARTED, saved, [saved.customer_id])
        return saved

    def complete(self, request_id: str, data: CompletionData | None = None) -> CollectionRequest:
        saved = self._apply(request_id, "complete", lambda request, now: self.lifecycle.mark_completed(request, data, now))
        self._publish(events.PICKUP_COMPLETED, saved, [saved.customer_id])
        return saved

    def cancel(self, request_id: str, reason: str | None = None) -> CollectionRequest:
        saved = self._apply(request_id, "cancel", lambda request, now: self.lifecycle.cancel(request, reason, now))
        recipients = [saved.assigned_driver] if saved.assigned_driver else self.recipients.dispatchers()
        payload = request_payload(saved, recipients)
        payload["reason"] = saved.cancellation_reason
        self.publisher.publish(events.PICKUP_CANCELLED, payload)
        return saved

    def reschedule(
        self,
        request_id: str,
        new_date: date,
        new_time: TimeSlot,
    ) -> tuple[CollectionRequest, CollectionRequest]:
        def attempt():
            for code_attempt in range(1, settings.request_code_attempts + 1):
                original = self.get_request(request_id)
                expected = original.version
                created = self.lifecycle.reschedule(original, new_date, new_time, self.clock())
                try:
                    return self.requests.save_reschedule(original, expected, created)
                except DuplicateRequestCode:
                    if code_attempt >= settings.request_code_attempts:
                        raise
                    logger.warning(f"Request code {created.request_code} already taken, generating another")

        original, created = retry_on_conflict(
            attempt, description=f"reschedule collection request {request_id}", attempts=self.attempts
        )
        logger.info(f"Rescheduled {original.request_code} to {created.request_code} on {new_date.isoformat()}")
        payload = request_payload(created, self.recipients.dispatchers())
        payload["rescheduled_from"] = original.id
        self.publisher.publish(events.PICKUP_RESCHEDULED, payload)
        return original, created

    def rate(self, request_id: str, rating: int, feedback: str | None = None) -> CollectionRequest:
        saved = self._apply(request_id, "rate", lambda request, now: self.lifecycle.rate(request, rating, feedback, now))
        payload = request_payload(saved, self.recipients.dispatchers())
        payload["rating"] = saved.customer_rating
        self.publisher.publish(events.PICKUP_RATED, payload)
        return saved

    def _apply(
        self,
        request_id: str,
        action: str,
        mutate: Callable[[CollectionRequest, Any], None],
    ) -> CollectionRequest:
        def attempt() -> CollectionRequest:
            request = self.get_request(request_id)
            expected = request.version
            mutate(request, self.clock())
            return self.requests.update(request, expected)

        saved = retry_on_conflict(attempt, description=f"{action} collection request {request_id}", attempts=self.attempts)
        logger.info(f"Collection request {saved.request_code} -> {saved.status.value} ({action})")
        return saved

    def _publish(self, event: str, request: CollectionRequest, recipients: list[str]) -> None:
        self.publisher.publish(event, request_payload(request, recipients))
