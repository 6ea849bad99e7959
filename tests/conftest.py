"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from storywire.config import Settings
from storywire.models import DeliveryStatus, Project, Story, WebhookEvent
from storywire.storage import StorywireStorage

# Add tests directory to path so shared constants can be imported
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

TEST_SECRET = "test-webhook-secret"
WEBHOOK_URL = "https://hooks.example.com/storywire"


class InMemoryEventStore:
    """Dict-backed stand-in for the parts of StorywireStorage the pipeline uses.

    Status writes go through ``WebhookEvent.advance`` so compare-and-set
    behavior matches the Qdrant store. Every write is recorded in
    ``writes`` for assertions.
    """

    def __init__(self) -> None:
        self.projects: dict[str, Project] = {}
        self.events: dict[str, WebhookEvent] = {}
        self.writes: list[tuple[str, DeliveryStatus, int | None, str | None]] = []
        self.fail_event_writes = False

    def add_project(self, project: Project) -> Project:
        self.projects[project.id] = project
        return project

    async def get_project(self, project_id: str) -> Project | None:
        return self.projects.get(project_id)

    async def store_webhook_event(self, event: WebhookEvent) -> str:
        if self.fail_event_writes:
            raise RuntimeError("store unavailable")
        self.events[event.id] = event.model_copy(deep=True)
        return event.id

    async def get_webhook_event(self, event_id: str) -> WebhookEvent | None:
        event = self.events.get(event_id)
        return event.model_copy(deep=True) if event is not None else None

    async def advance_webhook_event(
        self,
        event_id: str,
        status: DeliveryStatus,
        attempts: int | None = None,
        error: str | None = None,
    ) -> bool:
        self.writes.append((event_id, status, attempts, error))
        event = self.events.get(event_id)
        if event is None:
            return False
        return event.advance(status, attempts=attempts, error=error)


@pytest.fixture
def settings() -> Settings:
    """Test settings with a fixed signing secret."""
    return Settings(
        env="test", webhook_secret=TEST_SECRET, _env_file=None  # type: ignore[arg-type]
    )


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def project() -> Project:
    """Project with a webhook URL configured."""
    return Project(id="proj_jukebox", name="Jukebox", short_code="JB", webhook_url=WEBHOOK_URL)


@pytest.fixture
def make_story() -> Callable[..., Story]:
    """Factory for story snapshots of one story in the test project."""

    def _make(status: str = "backlog", **overrides: Any) -> Story:
        data: dict[str, Any] = {
            "id": "story_jb1",
            "short_id": "JB-1",
            "project_id": "proj_jukebox",
            "title": "Queue songs",
            "status": status,
            "assigned_agent": "agent-7",
            "epic_name": "Playback",
        }
        data.update(overrides)
        return Story.model_validate(data)

    return _make


@pytest.fixture
def make_event() -> Callable[..., WebhookEvent]:
    """Factory for pending webhook events."""

    def _make(**overrides: Any) -> WebhookEvent:
        data: dict[str, Any] = {
            "story_id": "story_jb1",
            "short_id": "JB-1",
            "project_id": "proj_jukebox",
            "old_status": "backlog",
            "new_status": "in-progress",
            "assigned_agent": "agent-7",
            "epic_name": "Playback",
        }
        data.update(overrides)
        return WebhookEvent.model_validate(data)

    return _make


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def responder(recorded_requests: list[httpx.Request]) -> Callable[..., httpx.AsyncClient]:
    """Build an httpx client whose receiver answers with the given statuses in order.

    Each entry is a status code or an exception instance to raise. The last
    entry repeats once the sequence is exhausted.
    """

    def _build(*outcomes: int | Exception) -> httpx.AsyncClient:
        remaining = list(outcomes)

        def handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            outcome = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome, request=request)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _build


@pytest.fixture
async def storage():
    """Create an in-memory storage instance for testing.

    Uses qdrant-client's local mode with in-memory storage.
    """
    store = StorywireStorage(prefix="test", location=":memory:")
    await store.initialize()

    yield store

    await store.close()
