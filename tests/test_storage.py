"""Unit tests for Storywire storage layer.

These tests use qdrant-client's local in-memory mode for fast, isolated testing.
No external Qdrant server is required.
"""

import asyncio
from unittest.mock import AsyncMock
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from qdrant_client.http.exceptions import UnexpectedResponse

from storywire.exceptions import NotFoundError, StorageError, ValidationError
from storywire.models import Project, Story, WebhookEvent
from storywire.storage import StorywireStorage
from storywire.storage.retry import is_transient_qdrant_error


def _event(project_id: str = "proj_1", minutes: int = 0, **overrides) -> WebhookEvent:
    data = {
        "story_id": "story_1",
        "short_id": "JB-1",
        "project_id": project_id,
        "old_status": "backlog",
        "new_status": "in-progress",
        "created_at": datetime(2026, 1, 1, tzinfo=UTC) + timedelta(minutes=minutes),
    }
    data.update(overrides)
    return WebhookEvent.model_validate(data)


class TestStorywireStorageInit:
    """Tests for storage initialization."""

    async def test_initialize_creates_collections(self, storage: StorywireStorage):
        """initialize() should create all required collections."""
        collections = await storage.client.get_collections()
        names = [c.name for c in collections.collections]

        assert "test_projects" in names
        assert "test_stories" in names
        assert "test_webhook_events" in names

    async def test_client_before_initialize(self):
        store = StorywireStorage(prefix="test", location=":memory:")
        with pytest.raises(RuntimeError):
            _ = store.client

    async def test_key_to_point_id_is_deterministic(self):
        first = StorywireStorage._key_to_point_id("evt_abc")
        assert first == StorywireStorage._key_to_point_id("evt_abc")
        assert first != StorywireStorage._key_to_point_id("evt_abd")
        assert len(first) == 36


class TestProjectStorage:
    """Tests for project storage."""

    async def test_store_and_get(self, storage: StorywireStorage):
        project = Project(name="Jukebox", short_code="JB", webhook_url="https://x.test/hook")
        await storage.store_project(project)

        retrieved = await storage.get_project(project.id)

        assert retrieved == project

    async def test_get_missing(self, storage: StorywireStorage):
        assert await storage.get_project("proj_missing") is None

    async def test_list_sorted_by_name(self, storage: StorywireStorage):
        await storage.store_project(Project(name="zeta", short_code="Z"))
        await storage.store_project(Project(name="Alpha", short_code="A"))

        names = [p.name for p in await storage.list_projects()]

        assert names == ["Alpha", "zeta"]

    async def test_set_and_clear_webhook_url(self, storage: StorywireStorage):
        project = Project(name="Jukebox", short_code="JB")
        await storage.store_project(project)

        updated = await storage.set_project_webhook_url(project.id, "https://x.test/hook")
        assert updated.webhook_url == "https://x.test/hook"
        assert (await storage.get_project(project.id)).has_webhook

        cleared = await storage.set_project_webhook_url(project.id, None)
        assert cleared.webhook_url is None
        assert not (await storage.get_project(project.id)).has_webhook

    async def test_set_webhook_url_missing_project(self, storage: StorywireStorage):
        with pytest.raises(NotFoundError):
            await storage.set_project_webhook_url("proj_missing", "https://x.test/hook")


class TestStoryStorage:
    """Tests for story storage."""

    async def test_store_and_get(self, storage: StorywireStorage):
        story = Story(short_id="JB-1", project_id="proj_1", title="Queue songs", tags=["ui"])
        await storage.store_story(story)

        assert await storage.get_story(story.id) == story

    async def test_update_returns_snapshots(self, storage: StorywireStorage):
        story = Story(short_id="JB-1", project_id="proj_1")
        await storage.store_story(story)

        before, after = await storage.update_story(story.id, status="in-progress")

        assert before.status == "backlog"
        assert after.status == "in-progress"
        assert after.updated_at >= before.updated_at
        assert (await storage.get_story(story.id)).status == "in-progress"

    async def test_update_immutable_field_rejected(self, storage: StorywireStorage):
        story = Story(short_id="JB-1", project_id="proj_1")
        await storage.store_story(story)

        with pytest.raises(ValidationError):
            await storage.update_story(story.id, project_id="proj_2")

    async def test_update_missing_story(self, storage: StorywireStorage):
        with pytest.raises(NotFoundError):
            await storage.update_story("story_missing", status="done")

    async def test_count_stories_per_project(self, storage: StorywireStorage):
        await storage.store_story(Story(short_id="JB-1", project_id="proj_1"))
        await storage.store_story(Story(short_id="JB-2", project_id="proj_1"))
        await storage.store_story(Story(short_id="XY-1", project_id="proj_2"))

        assert await storage.count_stories("proj_1") == 2
        assert await storage.count_stories("proj_2") == 1

    async def test_concurrent_updates_each_see_one_mutation(self, storage: StorywireStorage):
        """Serialized updates give before/after pairs that chain together."""
        story = Story(short_id="JB-1", project_id="proj_1")
        await storage.store_story(story)

        results = await asyncio.gather(
            storage.update_story(story.id, status="in-design"),
            storage.update_story(story.id, status="in-progress"),
        )

        transitions = {(b.status, a.status) for b, a in results}
        assert ("backlog", "in-design") in transitions or ("backlog", "in-progress") in transitions
        assert all(b.status != a.status for b, a in results)


class TestWebhookEventStorage:
    """Tests for webhook event storage."""

    async def test_store_and_get(self, storage: StorywireStorage):
        event = _event()
        await storage.store_webhook_event(event)

        assert await storage.get_webhook_event(event.id) == event

    async def test_list_newest_first(self, storage: StorywireStorage):
        for minutes in (5, 1, 9):
            await storage.store_webhook_event(_event(minutes=minutes))
        await storage.store_webhook_event(_event(project_id="proj_other"))

        events = await storage.list_webhook_events("proj_1")

        assert [e.created_at.minute for e in events] == [9, 5, 1]

    async def test_list_limit(self, storage: StorywireStorage):
        for minutes in range(5):
            await storage.store_webhook_event(_event(minutes=minutes))

        events = await storage.list_webhook_events("proj_1", limit=2)

        assert [e.created_at.minute for e in events] == [4, 3]

    async def test_list_default_limit_is_50(self, storage: StorywireStorage):
        for minutes in range(55):
            await storage.store_webhook_event(_event(minutes=minutes))

        assert len(await storage.list_webhook_events("proj_1")) == 50

    async def test_list_by_status(self, storage: StorywireStorage):
        delivered = _event(minutes=1)
        await storage.store_webhook_event(delivered)
        await storage.store_webhook_event(_event(minutes=2))
        await storage.advance_webhook_event(delivered.id, "delivered", attempts=1)

        events = await storage.list_webhook_events("proj_1", status="delivered")

        assert [e.id for e in events] == [delivered.id]

    async def test_advance_applies_transition(self, storage: StorywireStorage):
        event = _event()
        await storage.store_webhook_event(event)

        applied = await storage.advance_webhook_event(
            event.id, "retrying", attempts=1, error="Server error: 503 Service Unavailable"
        )

        stored = await storage.get_webhook_event(event.id)
        assert applied
        assert stored.status == "retrying"
        assert stored.attempts == 1
        assert stored.error == "Server error: 503 Service Unavailable"
        assert stored.attempted_at is not None

    async def test_advance_terminal_is_rejected(self, storage: StorywireStorage):
        event = _event()
        await storage.store_webhook_event(event)
        await storage.advance_webhook_event(event.id, "delivered", attempts=1)

        applied = await storage.advance_webhook_event(event.id, "failed", attempts=3, error="x")

        stored = await storage.get_webhook_event(event.id)
        assert not applied
        assert stored.status == "delivered"
        assert stored.attempts == 1

    async def test_advance_same_terminal_is_rejected(self, storage: StorywireStorage):
        """Re-writing the terminal status reports no change and keeps the record."""
        event = _event()
        await storage.store_webhook_event(event)
        await storage.advance_webhook_event(event.id, "delivered", attempts=1)
        first = await storage.get_webhook_event(event.id)

        applied = await storage.advance_webhook_event(event.id, "delivered", attempts=2, error="x")

        stored = await storage.get_webhook_event(event.id)
        assert not applied
        assert stored.attempts == 1
        assert stored.error is None
        assert stored.attempted_at == first.attempted_at

    async def test_advance_missing_event(self, storage: StorywireStorage):
        assert not await storage.advance_webhook_event("evt_missing", "delivered")

    async def test_concurrent_terminal_writes_one_wins(self, storage: StorywireStorage):
        event = _event()
        await storage.store_webhook_event(event)

        results = await asyncio.gather(
            storage.advance_webhook_event(event.id, "delivered", attempts=1),
            storage.advance_webhook_event(event.id, "failed", attempts=1, error="x"),
        )

        assert sorted(results) == [False, True]

    async def test_delivery_stats(self, storage: StorywireStorage):
        first, second, third = _event(minutes=1), _event(minutes=2), _event(minutes=3)
        for event in (first, second, third):
            await storage.store_webhook_event(event)
        await storage.advance_webhook_event(first.id, "delivered", attempts=1)
        await storage.advance_webhook_event(second.id, "failed", attempts=3, error="x")

        stats = await storage.get_delivery_stats("proj_1")

        assert stats.pending == 1
        assert stats.delivered == 1
        assert stats.failed == 1
        assert stats.retrying == 0
        assert stats.total == 3


class TestTransientErrors:
    """Tests for Qdrant retry classification."""

    def test_connect_error_is_transient(self):
        assert is_transient_qdrant_error(httpx.ConnectError("refused"))

    def test_timeout_is_transient(self):
        assert is_transient_qdrant_error(httpx.ReadTimeout("slow"))

    def test_server_error_is_transient(self):
        exc = UnexpectedResponse(503, "Service Unavailable", b"", httpx.Headers())
        assert is_transient_qdrant_error(exc)

    def test_client_error_is_not_transient(self):
        exc = UnexpectedResponse(400, "Bad Request", b"", httpx.Headers())
        assert not is_transient_qdrant_error(exc)

    def test_other_errors_are_not_transient(self):
        assert not is_transient_qdrant_error(ValueError("bad"))


class TestStorageFailures:
    """Tests for Qdrant failures surfacing as StorageError."""

    @pytest.mark.asyncio
    async def test_client_error_raises_storage_error(
        self, storage: StorywireStorage, monkeypatch
    ):
        """A 4xx from Qdrant is not retried and comes back as StorageError."""
        retrieve = AsyncMock(
            side_effect=UnexpectedResponse(400, "Bad Request", b"", httpx.Headers())
        )
        monkeypatch.setattr(storage.client, "retrieve", retrieve)

        with pytest.raises(StorageError, match="get_webhook_event"):
            await storage.get_webhook_event("evt_1")

        assert retrieve.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_error_retried_before_success(
        self, storage: StorywireStorage, monkeypatch
    ):
        project = Project(name="Jukebox", short_code="JB")
        await storage.store_project(project)
        real_retrieve = storage.client.retrieve
        calls = []

        async def flaky_retrieve(*args, **kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise httpx.ConnectError("refused")
            return await real_retrieve(*args, **kwargs)

        monkeypatch.setattr(storage.client, "retrieve", flaky_retrieve)

        fetched = await storage.get_project(project.id)

        assert fetched is not None
        assert fetched.id == project.id
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_scroll_failure_raises_storage_error(
        self, storage: StorywireStorage, monkeypatch
    ):
        """Connection errors that outlast the retries become StorageError."""
        scroll = AsyncMock(side_effect=httpx.ConnectError("refused"))
        monkeypatch.setattr(storage.client, "scroll", scroll)

        with pytest.raises(StorageError):
            await storage.list_webhook_events("proj_1")

        assert scroll.await_count == 3
