"""Story status change detection.

Compares the before/after snapshots of a story update and records a
pending WebhookEvent when the status changed. Detection never raises into
the update path: the story write is the source of truth and must not be
blocked by the notification pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import pydantic

from storywire.models import Story, WebhookEvent

if TYPE_CHECKING:
    from storywire.storage import StorywireStorage

logger = logging.getLogger(__name__)

Snapshot = Story | Mapping[str, Any] | None


def read_snapshot(snapshot: Snapshot) -> Story | None:
    """Coerce a snapshot into a Story, or None if it is absent or unreadable.

    Mapping snapshots may carry fields the Story model does not know about
    (caller bookkeeping, newer columns); only known fields are read. A
    mapping without an ``id`` is unreadable because the model would
    otherwise generate one and the before/after identity check would fail.
    """
    if snapshot is None:
        return None
    if isinstance(snapshot, Story):
        return snapshot
    if not snapshot.get("id"):
        logger.warning("Story snapshot has no id, skipping")
        return None
    known = {key: value for key, value in snapshot.items() if key in Story.model_fields}
    try:
        return Story.model_validate(known)
    except pydantic.ValidationError as e:
        logger.warning("Unreadable story snapshot (%d errors)", e.error_count())
        return None


def did_status_change(before: Story | None, after: Story | None) -> bool:
    """Whether the watched field differs between two snapshots."""
    if before is None or after is None:
        return False
    return before.status != after.status


class ChangeDetector:
    """Emits a webhook event for every story status transition.

    Example:
        ```python
        detector = ChangeDetector(storage)
        event = await detector.on_story_updated(before, after)
        ```
    """

    def __init__(self, storage: StorywireStorage) -> None:
        self._storage = storage

    async def on_story_updated(
        self, before: Snapshot, after: Snapshot
    ) -> WebhookEvent | None:
        """Record a pending webhook event if the story's status changed.

        Args:
            before: Story snapshot before the update.
            after: Story snapshot after the update.

        Returns:
            The persisted event, or None if nothing was emitted or the
            record could not be written.
        """
        before_story = read_snapshot(before)
        after_story = read_snapshot(after)

        if before_story is None or after_story is None:
            logger.info("Missing before or after snapshot, skipping")
            return None

        if before_story.id != after_story.id:
            logger.warning(
                "Snapshots belong to different stories (%s, %s), skipping",
                before_story.id,
                after_story.id,
            )
            return None

        if not did_status_change(before_story, after_story):
            logger.debug(
                "Story %s: status unchanged (%s), skipping webhook event",
                after_story.short_id,
                after_story.status,
            )
            return None

        logger.info(
            "Story %s: status changed from %s to %s",
            after_story.short_id,
            before_story.status,
            after_story.status,
        )

        event = WebhookEvent.from_transition(before_story, after_story)
        try:
            await self._storage.store_webhook_event(event)
        except Exception:
            logger.exception(
                "Failed to write webhook event for story %s", after_story.short_id
            )
            return None

        logger.info("Webhook event %s created for story %s", event.id, after_story.short_id)
        return event
