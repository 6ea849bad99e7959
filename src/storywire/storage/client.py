"""Qdrant storage client for Storywire.

This module provides the main StorywireStorage class that combines
all storage operations through mixins.

Example:
    ```python
    from storywire.storage import StorywireStorage

    async with StorywireStorage() as storage:
        await storage.store_project(project)
        before, after = await storage.update_story(story.id, status="in-progress")
    ```
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from qdrant_client import models

from .base import StorageBase
from .projects import ProjectMixin
from .retry import qdrant_retry
from .stories import StoryMixin
from .webhook import WebhookEventMixin

logger = logging.getLogger(__name__)


class DeliveryStats(BaseModel):
    """Webhook event counts for one project, by delivery status."""

    model_config = ConfigDict(extra="forbid")

    pending: int = Field(default=0, ge=0)
    retrying: int = Field(default=0, ge=0)
    delivered: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.pending + self.retrying + self.delivered + self.failed


class StorywireStorage(ProjectMixin, StoryMixin, WebhookEventMixin, StorageBase):
    """Async Qdrant storage client for Storywire documents.

    This class combines functionality from multiple mixins:
    - ProjectMixin: store_project, get_project, set_project_webhook_url
    - StoryMixin: store_story, get_story, update_story
    - WebhookEventMixin: store_webhook_event, list_webhook_events,
      advance_webhook_event

    Attributes:
        client: Async Qdrant client instance.
    """

    async def __aenter__(self) -> StorywireStorage:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @qdrant_retry
    async def get_delivery_stats(self, project_id: str) -> DeliveryStats:
        """Count a project's webhook events per delivery status."""
        counts: dict[str, int] = {}
        for status in ("pending", "retrying", "delivered", "failed"):
            result = await self.client.count(
                collection_name=self._collection_name("webhook_events"),
                count_filter=models.Filter(
                    must=[
                        self._match("project_id", project_id),
                        self._match("status", status),
                    ]
                ),
                exact=True,
            )
            counts[status] = int(result.count)
        return DeliveryStats(**counts)
