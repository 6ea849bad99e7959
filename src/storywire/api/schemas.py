"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from storywire.models import DeliveryStatus, Project, Story, StoryStatus, WebhookEvent


class ProjectCreateRequest(BaseModel):
    """Request body for creating a project.

    Attributes:
        name: Project name.
        short_code: Uppercase prefix for story short IDs.
        webhook_url: Optional receiver for status-change webhooks.
        project_id: Optional explicit project ID.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, description="Project name")
    short_code: str = Field(min_length=1, max_length=10, description="Story ID prefix, e.g. JB")
    webhook_url: str | None = Field(default=None, description="Webhook receiver URL")
    project_id: str | None = Field(default=None, description="Optional explicit project ID")


class WebhookConfigRequest(BaseModel):
    """Request body for setting or clearing a project's webhook URL."""

    model_config = ConfigDict(extra="forbid")

    webhook_url: str | None = Field(description="Receiver URL, or null to disable delivery")


class ProjectResponse(BaseModel):
    """Response model for a project."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    short_code: str
    webhook_url: str | None
    created_at: str

    @classmethod
    def from_project(cls, project: Project) -> ProjectResponse:
        return cls(
            id=project.id,
            name=project.name,
            short_code=project.short_code,
            webhook_url=project.webhook_url,
            created_at=project.created_at.isoformat(),
        )


class ProjectListResponse(BaseModel):
    """Response for listing projects."""

    model_config = ConfigDict(extra="forbid")

    projects: list[ProjectResponse]
    count: int


class StoryCreateRequest(BaseModel):
    """Request body for creating a story.

    Attributes:
        project_id: Owning project.
        title: Story title.
        status: Initial status (creation never emits a webhook).
        assigned_agent: Optional assigned agent.
        epic_name: Optional epic grouping label.
        tags: Free-form tags.
    """

    model_config = ConfigDict(extra="forbid")

    project_id: str = Field(min_length=1, description="Owning project ID")
    title: str = Field(default="", description="Story title")
    status: StoryStatus = Field(default="backlog", description="Initial status")
    assigned_agent: str | None = Field(default=None, description="Assigned agent")
    epic_name: str | None = Field(default=None, description="Epic grouping label")
    tags: list[str] = Field(default_factory=list)


class StoryUpdateRequest(BaseModel):
    """Request body for updating a story.

    Only fields present in the body are changed; send ``null`` to clear an
    optional field.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, description="Story title")
    status: StoryStatus | None = Field(default=None, description="New status")
    assigned_agent: str | None = Field(default=None, description="Assigned agent")
    epic_name: str | None = Field(default=None, description="Epic grouping label")
    tags: list[str] | None = Field(default=None)


class StoryResponse(BaseModel):
    """Response model for a story."""

    model_config = ConfigDict(extra="forbid")

    id: str
    short_id: str
    project_id: str
    title: str
    status: StoryStatus
    assigned_agent: str | None
    epic_name: str | None
    tags: list[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_story(cls, story: Story) -> StoryResponse:
        return cls(
            id=story.id,
            short_id=story.short_id,
            project_id=story.project_id,
            title=story.title,
            status=story.status,
            assigned_agent=story.assigned_agent,
            epic_name=story.epic_name,
            tags=list(story.tags),
            created_at=story.created_at.isoformat(),
            updated_at=story.updated_at.isoformat(),
        )


class StoryUpdateResponse(BaseModel):
    """Response for a story update.

    Attributes:
        story: The updated story.
        webhook_event_id: ID of the recorded webhook event, if the status changed.
    """

    model_config = ConfigDict(extra="forbid")

    story: StoryResponse
    webhook_event_id: str | None = None


class WebhookEventResponse(BaseModel):
    """Response model for a webhook event record."""

    model_config = ConfigDict(extra="forbid")

    id: str
    event_type: str
    story_id: str
    short_id: str
    project_id: str
    old_status: StoryStatus
    new_status: StoryStatus
    assigned_agent: str | None
    epic_name: str | None
    status: DeliveryStatus
    error: str | None
    attempts: int
    created_at: str
    attempted_at: str | None

    @classmethod
    def from_event(cls, event: WebhookEvent) -> WebhookEventResponse:
        return cls(
            id=event.id,
            event_type=event.event_type,
            story_id=event.story_id,
            short_id=event.short_id,
            project_id=event.project_id,
            old_status=event.old_status,
            new_status=event.new_status,
            assigned_agent=event.assigned_agent,
            epic_name=event.epic_name,
            status=event.status,
            error=event.error,
            attempts=event.attempts,
            created_at=event.created_at.isoformat(),
            attempted_at=event.attempted_at.isoformat() if event.attempted_at else None,
        )


class WebhookEventListResponse(BaseModel):
    """Response for listing a project's webhook events (newest first)."""

    model_config = ConfigDict(extra="forbid")

    project_id: str
    events: list[WebhookEventResponse]
    count: int


class DeliveryStatsResponse(BaseModel):
    """Webhook event counts for a project, by delivery status."""

    model_config = ConfigDict(extra="forbid")

    project_id: str
    pending: int
    retrying: int
    delivered: int
    failed: int
    total: int


class HealthResponse(BaseModel):
    """Response for health check endpoint.

    Attributes:
        status: Service status (healthy, degraded, unhealthy).
        version: API version.
        storage_connected: Whether storage is connected.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    storage_connected: bool
