"""HTTP webhook sink delivering events to an external notification or analytics service."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


class WebhookSink:
    def __init__(
        self,
        url: str,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook URL is not configured.")
        self.url = url
        self.timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.webhook_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.webhook_backoff_seconds
        self._client = httpx.Client(timeout=httpx.Timeout(self.timeout, connect=5.0), transport=transport)

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        body = {"event": event, "payload": payload}
        attempt = 0
        while True:
            try:
                response = self._client.post(self.url, json=body)
                response.raise_for_status()
                return
            except httpx.HTTPStatusError as exc:
                # Client errors will not succeed on retry.
                if exc.response.status_code < 500:
                    raise
                attempt += 1
                if attempt > self.max_retries:
                    raise
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"Webhook {self.url} unreachable after {attempt} attempts: {exc}")
                    raise
            wait_time = self.backoff_seconds * (2 ** (attempt - 1))
            logger.debug(f"Webhook delivery failed, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
            time.sleep(wait_time)

    def close(self) -> None:
        self._client.close()
