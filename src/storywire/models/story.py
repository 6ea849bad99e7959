"""Story and project documents.

These are the tracked entities. The notification pipeline only reads
``Project.webhook_url`` and compares ``Story.status`` between snapshots;
every other field is carried along for the payload or for the API.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator

from .base import ensure_utc, generate_id, utc_now

_HTTP_URL = TypeAdapter(HttpUrl)

# Story lifecycle columns
StoryStatus = Literal[
    "backlog",
    "in-design",
    "in-progress",
    "in-review",
    "done",
    "blocked",
    "cancelled",
]


class Project(BaseModel):
    """A project owning stories, with its optional delivery target.

    Attributes:
        id: Unique identifier for this project.
        name: Human-readable project name.
        short_code: Prefix for story short IDs (e.g. "JB" for "JB-1").
        webhook_url: Receiver for status-change notifications. None means
            no delivery is configured, which is not an error. Stored as given
            as given once it parses as an http(s) URL, so deliveries go to
            the configured string and not a normalized form of it.
        created_at: When the project was created.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("proj"))
    name: str = Field(min_length=1, description="Project name")
    short_code: str = Field(
        min_length=1,
        max_length=10,
        pattern=r"^[A-Z][A-Z0-9]*$",
        description="Uppercase prefix for story short IDs",
    )
    webhook_url: str | None = Field(
        default=None,
        description="Endpoint receiving status-change webhooks",
    )
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("webhook_url")
    @classmethod
    def _check_webhook_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        try:
            _HTTP_URL.validate_python(value)
        except ValueError as e:
            raise ValueError(f"invalid webhook URL: {value!r}") from e
        return value

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def has_webhook(self) -> bool:
        """Whether a delivery target is configured."""
        return self.webhook_url is not None


class Story(BaseModel):
    """A tracked work item.

    Only ``status`` is watched for change detection.

    Attributes:
        id: Unique identifier for this story.
        short_id: Display ID such as "JB-1".
        project_id: Owning project.
        title: Story title.
        status: Current lifecycle status.
        assigned_agent: Agent working the story (optional).
        epic_name: Epic grouping label (optional).
        tags: Free-form tags.
        created_at: When the story was created.
        updated_at: When the story was last modified.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("story"))
    short_id: str = Field(min_length=1, description="Display ID, e.g. JB-1")
    project_id: str = Field(min_length=1, description="Owning project ID")
    title: str = Field(default="", description="Story title")
    status: StoryStatus = Field(default="backlog", description="Lifecycle status")
    assigned_agent: str | None = Field(default=None, description="Assigned agent")
    epic_name: str | None = Field(default=None, description="Epic grouping label")
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)


__all__ = [
    "Project",
    "Story",
    "StoryStatus",
]
