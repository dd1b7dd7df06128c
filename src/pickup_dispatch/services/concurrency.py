"""Bounded retry for optimistic (conditional) writes."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from ..config import settings
from ..errors import ConcurrentModification

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_on_conflict(operation: Callable[[], T], *, description: str, attempts: int | None = None) -> T:
    """Run a load-mutate-write ``operation`` until its conditional write wins.

    Each attempt must re-read the entity. Only ``ConcurrentModification`` is
    retried; guard failures propagate on the first attempt.
    """

    max_attempts = attempts if attempts is not None else settings.max_write_attempts
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except ConcurrentModification:
            if attempt >= max_attempts:
                logger.warning(f"{description}: conditional write lost the race {attempt} times, giving up")
                raise
            logger.info(f"{description}: conditional write lost the race, retrying ({attempt}/{max_attempts})")
