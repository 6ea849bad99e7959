"""Webhook event storage operations for Storywire.

Event records are append-only: they are written once by the change
detector and afterwards only advanced through the delivery state machine
by ``advance_webhook_event``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from storywire.storage.retry import qdrant_retry

if TYPE_CHECKING:
    from storywire.models import DeliveryStatus, WebhookEvent

logger = logging.getLogger(__name__)

# Matches the dashboard's webhook event panel
DEFAULT_EVENT_LIST_LIMIT = 50


class WebhookEventMixin:
    """Mixin providing webhook event operations for StorywireStorage.

    This mixin expects the following attributes/methods from the base class:
    - _upsert_document(doc_type, document, doc_id)
    - _retrieve_document(doc_type, doc_id, doc_class)
    - _scroll_documents(doc_type, doc_class, conditions)
    - _match(key, value)
    - _write_lock: asyncio.Lock
    """

    _upsert_document: Any
    _retrieve_document: Any
    _scroll_documents: Any
    _match: Any
    _write_lock: asyncio.Lock

    @qdrant_retry
    async def store_webhook_event(self, event: WebhookEvent) -> str:
        """Store a webhook event record.

        Args:
            event: WebhookEvent to store.

        Returns:
            The event ID.
        """
        await self._upsert_document("webhook_events", event, event.id)
        return event.id

    @qdrant_retry
    async def get_webhook_event(self, event_id: str) -> WebhookEvent | None:
        """Get a webhook event by ID."""
        from storywire.models import WebhookEvent

        event: WebhookEvent | None = await self._retrieve_document(
            "webhook_events", event_id, WebhookEvent
        )
        return event

    @qdrant_retry
    async def list_webhook_events(
        self,
        project_id: str,
        limit: int = DEFAULT_EVENT_LIST_LIMIT,
        status: DeliveryStatus | None = None,
    ) -> list[WebhookEvent]:
        """List a project's webhook events, newest first.

        Args:
            project_id: Project to list events for.
            limit: Maximum events to return.
            status: Optional delivery status filter.

        Returns:
            List of WebhookEvent sorted by created_at (newest first).
        """
        from storywire.models import WebhookEvent

        conditions = [self._match("project_id", project_id)]
        if status is not None:
            conditions.append(self._match("status", status))

        events: list[WebhookEvent] = await self._scroll_documents(
            "webhook_events", WebhookEvent, conditions
        )
        events.sort(key=lambda e: e.created_at, reverse=True)
        return events[:limit]

    async def advance_webhook_event(
        self,
        event_id: str,
        status: DeliveryStatus,
        attempts: int | None = None,
        error: str | None = None,
    ) -> bool:
        """Compare-and-set a webhook event's delivery status.

        The current record is re-read under the write lock and the update is
        applied only if the delivery state machine allows the transition.
        Duplicate writes (a second ``delivered``, a repeated retry attempt)
        are therefore harmless.

        Args:
            event_id: Event to update.
            status: Target delivery status.
            attempts: Attempt number reached; the stored counter never decreases.
            error: Error text to record.

        Returns:
            True if the record was updated, False if the event is missing or
            the transition was rejected.
        """
        async with self._write_lock:
            event = await self.get_webhook_event(event_id)
            if event is None:
                logger.warning("Cannot advance missing webhook event %s to %s", event_id, status)
                return False

            current = event.status
            if not event.advance(status, attempts=attempts, error=error):
                logger.debug(
                    "Ignored webhook event %s transition %s -> %s", event_id, current, status
                )
                return False

            await self.store_webhook_event(event)
            return True
