"""Storage backends for Storywire.

This module provides the document store for projects, stories and
webhook event records, persisted to Qdrant.

Example:
    ```python
    from storywire.storage import StorywireStorage

    async with StorywireStorage() as storage:
        await storage.store_story(story)
        events = await storage.list_webhook_events("project-123")
    ```
"""

from .base import COLLECTION_NAMES
from .client import DeliveryStats, StorywireStorage
from .retry import qdrant_retry
from .stories import MUTABLE_STORY_FIELDS
from .webhook import DEFAULT_EVENT_LIST_LIMIT

__all__ = [
    "COLLECTION_NAMES",
    "DEFAULT_EVENT_LIST_LIMIT",
    "DeliveryStats",
    "MUTABLE_STORY_FIELDS",
    "StorywireStorage",
    "qdrant_retry",
]
