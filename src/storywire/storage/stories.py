"""Story storage operations."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from storywire.exceptions import NotFoundError, ValidationError
from storywire.models import utc_now
from storywire.storage.retry import qdrant_retry

if TYPE_CHECKING:
    from storywire.models import Story

# Fields a story update may change; identity and ownership are fixed.
MUTABLE_STORY_FIELDS = frozenset({"title", "status", "assigned_agent", "epic_name", "tags"})


class StoryMixin:
    """Mixin providing story operations for StorywireStorage.

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
    async def store_story(self, story: Story) -> str:
        """Store a story, replacing any previous version.

        Returns:
            The story ID.
        """
        await self._upsert_document("stories", story, story.id)
        return story.id

    @qdrant_retry
    async def get_story(self, story_id: str) -> Story | None:
        """Get a story by ID."""
        from storywire.models import Story

        story: Story | None = await self._retrieve_document("stories", story_id, Story)
        return story

    @qdrant_retry
    async def list_stories(self, project_id: str) -> list[Story]:
        """List a project's stories, oldest first."""
        from storywire.models import Story

        stories: list[Story] = await self._scroll_documents(
            "stories", Story, [self._match("project_id", project_id)]
        )
        stories.sort(key=lambda s: s.created_at)
        return stories

    async def count_stories(self, project_id: str) -> int:
        """Count a project's stories (used to number short IDs)."""
        return len(await self.list_stories(project_id))

    async def update_story(self, story_id: str, **changes: Any) -> tuple[Story, Story]:
        """Apply field changes to a story.

        The read-modify-write runs under the storage write lock so the
        returned snapshots describe exactly one mutation.

        Args:
            story_id: Story to update.
            **changes: New values for mutable fields
                (title, status, assigned_agent, epic_name, tags).

        Returns:
            Tuple of (before, after) snapshots.

        Raises:
            NotFoundError: If the story does not exist.
            ValidationError: If a field is unknown or immutable.
        """
        from storywire.models import Story

        rejected = set(changes) - MUTABLE_STORY_FIELDS
        if rejected:
            raise ValidationError(
                ", ".join(sorted(rejected)), "field cannot be changed on a story"
            )

        async with self._write_lock:
            before = await self.get_story(story_id)
            if before is None:
                raise NotFoundError("story", story_id)

            after = Story.model_validate(
                {**before.model_dump(), **changes, "updated_at": utc_now()}
            )
            await self.store_story(after)
            return before, after
