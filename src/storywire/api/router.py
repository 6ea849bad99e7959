"""FastAPI router for Storywire API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from storywire import __version__
from storywire.models import DeliveryStatus
from storywire.service import StorywireService
from storywire.storage import DEFAULT_EVENT_LIST_LIMIT

from .schemas import (
    DeliveryStatsResponse,
    HealthResponse,
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectResponse,
    StoryCreateRequest,
    StoryResponse,
    StoryUpdateRequest,
    StoryUpdateResponse,
    WebhookConfigRequest,
    WebhookEventListResponse,
    WebhookEventResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Service instance (set by app lifespan)
_service: StorywireService | None = None


def set_service(service: StorywireService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> StorywireService:
    """Dependency to get the StorywireService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[StorywireService, Depends(get_service)]


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check() -> HealthResponse:
    """Check service health.

    Returns the current health status of the Storywire service,
    including storage connectivity.
    """
    if _service is not None:
        return HealthResponse(status="healthy", version=__version__, storage_connected=True)
    return HealthResponse(status="unhealthy", version=__version__, storage_connected=False)


@router.post(
    "/projects",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["projects"],
)
async def create_project(request: ProjectCreateRequest, service: ServiceDep) -> ProjectResponse:
    """Create a project, optionally with a webhook URL."""
    project = await service.create_project(
        name=request.name,
        short_code=request.short_code,
        webhook_url=request.webhook_url,
        project_id=request.project_id,
    )
    return ProjectResponse.from_project(project)


@router.get("/projects", response_model=ProjectListResponse, tags=["projects"])
async def list_projects(service: ServiceDep) -> ProjectListResponse:
    """List all projects, sorted by name."""
    projects = await service.list_projects()
    return ProjectListResponse(
        projects=[ProjectResponse.from_project(p) for p in projects],
        count=len(projects),
    )


@router.get("/projects/{project_id}", response_model=ProjectResponse, tags=["projects"])
async def get_project(project_id: str, service: ServiceDep) -> ProjectResponse:
    """Get a project by ID."""
    project = await service.get_project(project_id)
    return ProjectResponse.from_project(project)


@router.put("/projects/{project_id}/webhook", response_model=ProjectResponse, tags=["webhooks"])
async def configure_webhook(
    project_id: str,
    request: WebhookConfigRequest,
    service: ServiceDep,
) -> ProjectResponse:
    """Set or clear the project's webhook URL.

    Send ``{"webhook_url": null}`` to stop deliveries. Events recorded while
    no URL is configured stay ``pending``.
    """
    project = await service.configure_webhook(project_id, request.webhook_url)
    return ProjectResponse.from_project(project)


@router.get(
    "/projects/{project_id}/webhook-events",
    response_model=WebhookEventListResponse,
    tags=["webhooks"],
)
async def list_webhook_events(
    project_id: str,
    service: ServiceDep,
    limit: Annotated[int, Query(ge=1, le=500)] = DEFAULT_EVENT_LIST_LIMIT,
    event_status: Annotated[DeliveryStatus | None, Query(alias="status")] = None,
) -> WebhookEventListResponse:
    """List the project's webhook events, newest first."""
    events = await service.list_webhook_events(project_id, limit=limit, status=event_status)
    return WebhookEventListResponse(
        project_id=project_id,
        events=[WebhookEventResponse.from_event(e) for e in events],
        count=len(events),
    )


@router.get(
    "/projects/{project_id}/webhook-stats",
    response_model=DeliveryStatsResponse,
    tags=["webhooks"],
)
async def get_delivery_stats(project_id: str, service: ServiceDep) -> DeliveryStatsResponse:
    """Count the project's webhook events by delivery status."""
    stats = await service.get_delivery_stats(project_id)
    return DeliveryStatsResponse(
        project_id=project_id,
        pending=stats.pending,
        retrying=stats.retrying,
        delivered=stats.delivered,
        failed=stats.failed,
        total=stats.total,
    )


@router.get(
    "/webhook-events/{event_id}",
    response_model=WebhookEventResponse,
    tags=["webhooks"],
)
async def get_webhook_event(event_id: str, service: ServiceDep) -> WebhookEventResponse:
    """Get a single webhook event record."""
    event = await service.get_webhook_event(event_id)
    return WebhookEventResponse.from_event(event)


@router.post(
    "/stories",
    response_model=StoryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["stories"],
)
async def create_story(request: StoryCreateRequest, service: ServiceDep) -> StoryResponse:
    """Create a story in a project. Creation does not emit a webhook."""
    story = await service.create_story(
        request.project_id,
        title=request.title,
        status=request.status,
        assigned_agent=request.assigned_agent,
        epic_name=request.epic_name,
        tags=request.tags,
    )
    return StoryResponse.from_story(story)


@router.get("/stories/{story_id}", response_model=StoryResponse, tags=["stories"])
async def get_story(story_id: str, service: ServiceDep) -> StoryResponse:
    """Get a story by ID."""
    story = await service.get_story(story_id)
    return StoryResponse.from_story(story)


@router.patch("/stories/{story_id}", response_model=StoryUpdateResponse, tags=["stories"])
async def update_story(
    story_id: str,
    request: StoryUpdateRequest,
    service: ServiceDep,
) -> StoryUpdateResponse:
    """Update a story.

    A status change records a webhook event before the response is sent;
    delivery to the project's webhook URL continues in the background.
    """
    changes = request.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )

    result = await service.update_story(story_id, **changes)
    if result.event is not None:
        logger.info(
            "Story %s moved %s -> %s (event %s)",
            result.story.short_id,
            result.event.old_status,
            result.event.new_status,
            result.event.id,
        )
    return StoryUpdateResponse(
        story=StoryResponse.from_story(result.story),
        webhook_event_id=result.event.id if result.event else None,
    )
