"""Domain events and the sinks that receive them."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from ...config import settings

logger = logging.getLogger(__name__)

PICKUP_SCHEDULED = "pickup-scheduled"
PICKUP_CONFIRMED = "pickup-confirmed"
PICKUP_UPDATED = "pickup-updated"
DRIVER_ASSIGNED = "driver-assigned"
PICKUP_STARTED = "pickup-started"
PICKUP_COMPLETED = "pickup-completed"
PICKUP_CANCELLED = "pickup-cancelled"
PICKUP_RESCHEDULED = "pickup-rescheduled"
PICKUP_RATED = "pickup-rated"
ROUTE_CREATED = "route-created"
ROUTE_UPDATED = "route-updated"
ROUTE_OPTIMIZED = "route-optimized"
ROUTE_ASSIGNED = "route-assigned"
ROUTE_UNASSIGNED = "route-unassigned"
ROUTE_STARTED = "route-started"
ROUTE_COMPLETED = "route-completed"
VEHICLE_ASSIGNED = "vehicle-assigned"
VEHICLE_UNASSIGNED = "vehicle-unassigned"


class EventSink(Protocol):
    """Fire-and-forget receiver of lifecycle events."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        ...


class LoggingSink:
    """Writes every event to the application log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        subject = payload.get("request_code") or payload.get("route_id") or payload.get("vehicle_id") or "-"
        logger.log(self.level, f"event={event} subject={subject} recipients={payload.get('recipients', [])}")


class RecordingSink:
    """Keeps events in memory so tests can assert on what was published."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


class BackgroundSink:
    """Delivers events to a slow sink from worker threads.

    ``notify`` only queues the delivery. Once ``max_pending`` deliveries are
    outstanding, further events are dropped with a warning.
    """

    def __init__(
        self,
        sink: EventSink,
        *,
        max_workers: int | None = None,
        max_pending: int | None = None,
    ) -> None:
        self.sink = sink
        self.name = type(sink).__name__
        self.max_pending = max_pending if max_pending is not None else settings.webhook_max_pending
        self._slots = threading.BoundedSemaphore(self.max_pending)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.webhook_workers,
            thread_name_prefix=f"events-{self.name}",
        )

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        if not self._slots.acquire(blocking=False):
            logger.warning(f"{self.name} has {self.max_pending} deliveries pending, dropping '{event}'")
            return
        try:
            self._executor.submit(self._deliver, event, payload)
        except RuntimeError:
            self._slots.release()
            raise

    def _deliver(self, event: str, payload: dict[str, Any]) -> None:
        try:
            self.sink.notify(event, payload)
        except Exception as exc:
            logger.warning(f"Event sink {self.name} failed for '{event}': {exc}")
        finally:
            self._slots.release()

    def close(self, wait: bool = True) -> None:
        """Stop accepting events; with ``wait`` the queued deliveries finish first."""

        self._executor.shutdown(wait=wait)
        close = getattr(self.sink, "close", None)
        if close is not None:
            close()


class EventPublisher:
    """Fans each event out to every sink.

    A failing sink is logged and skipped, so delivery problems never fail the
    command that produced the event. Sinks that talk to the network are
    wrapped in :class:`BackgroundSink` so publishing never waits on them.
    """

    def __init__(self, sinks: Iterable[EventSink] = ()) -> None:
        self.sinks = list(sinks)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        envelope = {**payload, "event": event, "occurred_at": datetime.now(timezone.utc).isoformat()}
        for sink in self.sinks:
            try:
                sink.notify(event, envelope)
            except Exception as exc:
                logger.warning(f"Event sink {type(sink).__name__} failed for '{event}': {exc}")

    def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()
