"""Task dispatch wiring story updates to webhook delivery.

Story updates are handed to the change detector inline, so the event
record is durable by the time the update call returns. Each recorded
event is then delivered by its own asyncio task, bounded by a semaphore.

Invocation is at-least-once: ``event_created`` may be called again for an
event (for example by a sweeper resubmitting pending events) and the
dispatcher's compare-and-set writes keep the record consistent.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from storywire.logging import get_logger

if TYPE_CHECKING:
    from storywire.models import WebhookEvent

    from .detector import ChangeDetector, Snapshot
    from .dispatcher import WebhookDispatcher

logger = get_logger(__name__)


class NotificationPipeline:
    """Runs change detection and schedules webhook dispatch tasks.

    Example:
        ```python
        pipeline = NotificationPipeline(detector, dispatcher, max_concurrent=10)
        event = await pipeline.story_updated(before, after)
        await pipeline.drain()
        await pipeline.shutdown()
        ```
    """

    def __init__(
        self,
        detector: ChangeDetector,
        dispatcher: WebhookDispatcher,
        max_concurrent: int = 10,
    ) -> None:
        self._detector = detector
        self._dispatcher = dispatcher
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Number of dispatch tasks not yet finished."""
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    async def story_updated(self, before: Snapshot, after: Snapshot) -> WebhookEvent | None:
        """Detect a status change and schedule delivery of the resulting event.

        Returns:
            The recorded event, or None if no event was recorded.
        """
        event = await self._detector.on_story_updated(before, after)
        if event is not None:
            self.event_created(event)
        return event

    def event_created(self, event: WebhookEvent) -> asyncio.Task[None] | None:
        """Schedule a dispatch task for a recorded event.

        Returns:
            The scheduled task, or None if the pipeline is shut down.
        """
        if self._closed:
            logger.warning("Pipeline closed, event left pending", event_id=event.id)
            return None

        task = asyncio.create_task(self._dispatch(event), name=f"webhook-dispatch-{event.id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def _dispatch(self, event: WebhookEvent) -> None:
        async with self._semaphore:
            await self._dispatcher.on_event_created(event)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Webhook dispatch task failed",
                task=task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self) -> None:
        """Wait until every scheduled dispatch task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting events and cancel in-flight deliveries.

        Cancelled deliveries write nothing further; their events keep the
        last status already recorded.
        """
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        if tasks:
            logger.info("Webhook pipeline stopped", cancelled=len(tasks))
