"""Webhook delivery with bounded retries and exponential backoff.

For each newly recorded WebhookEvent the dispatcher:

1. Skips events that already reached a terminal status (re-invocation).
2. Re-reads the owning project. A missing project fails the event; a
   project without a webhook URL leaves it pending.
3. Tries up to ``max_attempts`` deliveries, sleeping 1s, 2s, 4s, ...
   between retryable failures and stopping at the first success or
   permanent failure.

Every outcome is written through the store's compare-and-set, so
duplicate invocations never move an event backwards.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from storywire.exceptions import DeliveryError
from storywire.logging import get_logger, log_context

from .signing import Signer
from .transport import DeliveryTransport

if TYPE_CHECKING:
    import httpx

    from storywire.config import Settings
    from storywire.models import DeliveryStatus, WebhookEvent
    from storywire.storage import StorywireStorage

logger = get_logger(__name__)

MAX_ATTEMPTS = 3
BASE_RETRY_DELAY_MS = 1000
PROJECT_NOT_FOUND = "Project not found"

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay_ms(attempt: int, base_delay_ms: int = BASE_RETRY_DELAY_MS) -> int:
    """Delay after failed attempt ``attempt`` (1-indexed): base * 2^(attempt-1)."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base_delay_ms * 2 ** (attempt - 1)


def backoff_delays(
    max_attempts: int = MAX_ATTEMPTS, base_delay_ms: int = BASE_RETRY_DELAY_MS
) -> list[int]:
    """Backoff schedule in milliseconds, one entry per attempt.

    Example: backoff_delays(3) -> [1000, 2000, 4000]
    """
    return [backoff_delay_ms(attempt, base_delay_ms) for attempt in range(1, max_attempts + 1)]


class WebhookDispatcher:
    """Delivers webhook events to their project's webhook URL.

    Args:
        storage: Store holding projects and webhook events.
        transport: Performs individual delivery attempts.
        max_attempts: Attempts before an event is marked failed.
        base_delay_ms: Backoff after the first failed attempt.
        sleep: Awaitable sleep, replaceable in tests.

    Example:
        ```python
        dispatcher = WebhookDispatcher.from_settings(storage, settings)
        await dispatcher.on_event_created(event)
        ```
    """

    def __init__(
        self,
        storage: StorywireStorage,
        transport: DeliveryTransport,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay_ms: int = BASE_RETRY_DELAY_MS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._storage = storage
        self._transport = transport
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        storage: StorywireStorage,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
    ) -> WebhookDispatcher:
        """Build a dispatcher (and its transport) from configuration."""
        transport = DeliveryTransport(
            Signer.from_settings(settings),
            timeout_seconds=settings.webhook_timeout_seconds,
            client=client,
        )
        return cls(
            storage,
            transport,
            max_attempts=settings.webhook_max_attempts,
            base_delay_ms=settings.webhook_base_delay_ms,
        )

    async def on_event_created(self, event: WebhookEvent) -> None:
        """Deliver a newly recorded event.

        Safe to invoke more than once for the same event.
        """
        with log_context(event_id=event.id, short_id=event.short_id):
            current = await self._storage.get_webhook_event(event.id)
            if current is None:
                logger.warning("Webhook event not found in store, skipping")
                return
            if current.is_terminal:
                logger.info("Webhook event already finished, skipping", status=current.status)
                return

            logger.info("Processing webhook event", project_id=current.project_id)

            project = await self._storage.get_project(current.project_id)
            if project is None:
                logger.error("Project not found, marking event as failed")
                await self._write(current, "failed", error=PROJECT_NOT_FOUND)
                return

            if project.webhook_url is None:
                logger.info("Project has no webhook URL configured, skipping delivery")
                return

            await self._deliver_with_retries(current, project.webhook_url)

    async def _deliver_with_retries(self, event: WebhookEvent, url: str) -> None:
        """Run the attempt loop for one event."""
        body = event.to_payload().to_bytes()
        last_error: str | None = None

        for attempt in range(1, self._max_attempts + 1):
            logger.info("Delivery attempt", attempt=attempt, max_attempts=self._max_attempts)
            try:
                status_code = await self._transport.send(url, body, event.event_type)
            except DeliveryError as e:
                last_error = e.message
                if not e.retryable:
                    logger.warning(
                        "Webhook rejected, not retrying", attempt=attempt, error=e.message
                    )
                    await self._write(event, "failed", attempts=attempt, error=e.message)
                    return

                logger.warning("Delivery attempt failed", attempt=attempt, error=e.message)
                if not await self._write(event, "retrying", attempts=attempt, error=e.message):
                    return

                if attempt < self._max_attempts:
                    delay_ms = backoff_delay_ms(attempt, self._base_delay_ms)
                    logger.info("Waiting before retry", delay_ms=delay_ms)
                    await self._sleep(delay_ms / 1000)
                continue
            except Exception as e:
                logger.exception("Unexpected webhook delivery error", attempt=attempt)
                await self._write(
                    event, "failed", attempts=attempt, error=f"Unexpected error: {e}"
                )
                return

            logger.info("Webhook delivered", attempt=attempt, status_code=status_code)
            await self._write(event, "delivered", attempts=attempt)
            return

        logger.error("All delivery attempts exhausted", attempts=self._max_attempts)
        await self._write(
            event, "failed", attempts=self._max_attempts, error=last_error or "Unknown error"
        )

    async def _write(
        self,
        event: WebhookEvent,
        status: DeliveryStatus,
        attempts: int | None = None,
        error: str | None = None,
    ) -> bool:
        """Persist an outcome; False means the store refused the transition."""
        applied: bool = await self._storage.advance_webhook_event(
            event.id, status, attempts=attempts, error=error
        )
        if not applied:
            logger.info("Status write not applied, event already advanced", status=status)
        return applied
