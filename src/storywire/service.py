"""Core Storywire service layer.

This module provides the StorywireService that combines the entity store
and the webhook notification pipeline behind a small project/story
interface.

Example:
    ```python
    from storywire.service import StorywireService

    async with StorywireService.create() as storywire:
        project = await storywire.create_project(
            name="Jukebox",
            short_code="JB",
            webhook_url="https://hooks.example.com/storywire",
        )
        story = await storywire.create_story(project.id, title="Queue songs")

        # Moving the story emits a signed state-transition webhook
        result = await storywire.update_story(story.id, status="in-progress")
        print(result.event.id if result.event else "no event")
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict

from storywire.config import Settings
from storywire.exceptions import NotFoundError, ValidationError
from storywire.logging import get_logger
from storywire.models import DeliveryStatus, Project, Story, WebhookEvent
from storywire.storage import DEFAULT_EVENT_LIST_LIMIT, DeliveryStats, StorywireStorage
from storywire.webhooks import ChangeDetector, NotificationPipeline, WebhookDispatcher

logger = get_logger(__name__)


class StoryUpdateResult(BaseModel):
    """Result of a story update.

    Attributes:
        story: The story after the update.
        event: The webhook event recorded for a status change, if any.
    """

    model_config = ConfigDict(extra="forbid")

    story: Story
    event: WebhookEvent | None = None


def _validation_error(exc: pydantic.ValidationError) -> ValidationError:
    """Convert the first pydantic error into a Storywire ValidationError."""
    first = exc.errors()[0]
    field_name = ".".join(str(part) for part in first["loc"]) or "body"
    return ValidationError(field_name, first["msg"])


@dataclass
class StorywireService:
    """High-level Storywire service.

    This service provides:
    - create_project() / configure_webhook(): Manage delivery targets
    - create_story() / update_story(): Track stories; status changes are
      handed to the notification pipeline
    - list_webhook_events() / get_delivery_stats(): Inspect deliveries

    Attributes:
        storage: Entity store (Qdrant).
        settings: Configuration settings.
        dispatcher: Webhook dispatcher (built from settings if None).
        pipeline: Notification pipeline (built from settings if None).
    """

    storage: StorywireStorage
    settings: Settings
    dispatcher: WebhookDispatcher | None = field(default=None)
    pipeline: NotificationPipeline | None = field(default=None)

    def __post_init__(self) -> None:
        """Build the notification pipeline if it was not injected."""
        if self.dispatcher is None:
            self.dispatcher = WebhookDispatcher.from_settings(self.storage, self.settings)
        if self.pipeline is None:
            self.pipeline = NotificationPipeline(
                ChangeDetector(self.storage),
                self.dispatcher,
                max_concurrent=self.settings.dispatch_max_concurrent,
            )

    @classmethod
    def create(cls, settings: Settings | None = None) -> StorywireService:
        """Create a StorywireService with default dependencies.

        Args:
            settings: Optional settings. Uses defaults if None.

        Returns:
            Configured StorywireService instance.
        """
        if settings is None:
            settings = Settings()

        return cls(
            storage=StorywireStorage(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                prefix=settings.collection_prefix,
            ),
            settings=settings,
        )

    @property
    def notifications(self) -> NotificationPipeline:
        """The notification pipeline (always set after construction)."""
        assert self.pipeline is not None
        return self.pipeline

    async def initialize(self) -> None:
        """Initialize the service (storage collections, etc.)."""
        await self.storage.initialize()

    async def close(self) -> None:
        """Stop pending deliveries and release storage."""
        await self.notifications.shutdown()
        await self.storage.close()

    async def __aenter__(self) -> StorywireService:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    # Projects

    async def create_project(
        self,
        name: str,
        short_code: str,
        webhook_url: str | None = None,
        project_id: str | None = None,
    ) -> Project:
        """Create a project.

        Args:
            name: Project name.
            short_code: Uppercase prefix for story short IDs.
            webhook_url: Optional receiver for status-change webhooks.
            project_id: Optional explicit ID (generated if None).

        Returns:
            The stored project.

        Raises:
            ValidationError: If a field is invalid.
        """
        data: dict[str, Any] = {
            "name": name,
            "short_code": short_code,
            "webhook_url": webhook_url,
        }
        if project_id is not None:
            data["id"] = project_id

        try:
            project = Project.model_validate(data)
        except pydantic.ValidationError as e:
            raise _validation_error(e) from e

        await self.storage.store_project(project)
        logger.info(
            "Project created",
            project_id=project.id,
            short_code=project.short_code,
            has_webhook=project.has_webhook,
        )
        return project

    async def get_project(self, project_id: str) -> Project:
        """Get a project.

        Raises:
            NotFoundError: If the project does not exist.
        """
        project = await self.storage.get_project(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    async def list_projects(self) -> list[Project]:
        return await self.storage.list_projects()

    async def configure_webhook(self, project_id: str, webhook_url: str | None) -> Project:
        """Set or clear a project's webhook URL.

        Takes effect for events dispatched afterwards: the dispatcher re-reads
        the project for every event. The URL is validated but kept as given;
        deliveries POST to that exact string.

        Raises:
            NotFoundError: If the project does not exist.
            ValidationError: If the URL is not a valid HTTP(S) URL.
        """
        try:
            project = await self.storage.set_project_webhook_url(project_id, webhook_url)
        except pydantic.ValidationError as e:
            raise _validation_error(e) from e

        if webhook_url is None:
            logger.info("Webhook URL cleared", project_id=project_id)
        else:
            logger.info("Webhook URL set", project_id=project_id)
        return project

    # Stories

    async def create_story(
        self,
        project_id: str,
        title: str = "",
        status: str = "backlog",
        assigned_agent: str | None = None,
        epic_name: str | None = None,
        tags: list[str] | None = None,
    ) -> Story:
        """Create a story numbered within its project (e.g. "JB-3").

        Creation never emits a webhook event; only status changes do.

        Raises:
            NotFoundError: If the project does not exist.
            ValidationError: If a field is invalid.
        """
        project = await self.get_project(project_id)
        number = await self.storage.count_stories(project_id) + 1

        try:
            story = Story.model_validate(
                {
                    "short_id": f"{project.short_code}-{number}",
                    "project_id": project.id,
                    "title": title,
                    "status": status,
                    "assigned_agent": assigned_agent,
                    "epic_name": epic_name,
                    "tags": tags or [],
                }
            )
        except pydantic.ValidationError as e:
            raise _validation_error(e) from e

        await self.storage.store_story(story)
        logger.info("Story created", story_id=story.id, short_id=story.short_id)
        return story

    async def get_story(self, story_id: str) -> Story:
        """Get a story.

        Raises:
            NotFoundError: If the story does not exist.
        """
        story = await self.storage.get_story(story_id)
        if story is None:
            raise NotFoundError("story", story_id)
        return story

    async def update_story(self, story_id: str, **changes: Any) -> StoryUpdateResult:
        """Apply changes to a story and notify the webhook pipeline.

        The event record (if the status changed) is persisted before this
        returns; delivery continues in the background.

        Raises:
            NotFoundError: If the story does not exist.
            ValidationError: If a field is immutable or invalid.
        """
        try:
            before, after = await self.storage.update_story(story_id, **changes)
        except pydantic.ValidationError as e:
            raise _validation_error(e) from e

        event = await self.notifications.story_updated(before, after)
        return StoryUpdateResult(story=after, event=event)

    # Webhook events

    async def list_webhook_events(
        self,
        project_id: str,
        limit: int = DEFAULT_EVENT_LIST_LIMIT,
        status: DeliveryStatus | None = None,
    ) -> list[WebhookEvent]:
        """List a project's webhook events, newest first.

        Raises:
            NotFoundError: If the project does not exist.
        """
        await self.get_project(project_id)
        return await self.storage.list_webhook_events(project_id, limit=limit, status=status)

    async def get_webhook_event(self, event_id: str) -> WebhookEvent:
        """Get a webhook event record.

        Raises:
            NotFoundError: If the event does not exist.
        """
        event = await self.storage.get_webhook_event(event_id)
        if event is None:
            raise NotFoundError("webhook_event", event_id)
        return event

    async def get_delivery_stats(self, project_id: str) -> DeliveryStats:
        """Count a project's webhook events per delivery status.

        Raises:
            NotFoundError: If the project does not exist.
        """
        await self.get_project(project_id)
        return await self.storage.get_delivery_stats(project_id)


__all__ = ["StoryUpdateResult", "StorywireService"]
