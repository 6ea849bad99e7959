"""Storywire: story status webhooks you can verify.

Tracks projects and stories, detects story status changes and delivers
each one to the project's webhook URL as an HMAC-SHA256 signed POST,
retrying transient failures with exponential backoff.

Quick Start:
    from storywire.service import StorywireService

    async with StorywireService.create() as storywire:
        project = await storywire.create_project(
            name="Jukebox",
            short_code="JB",
            webhook_url="https://hooks.example.com/storywire",
        )
        story = await storywire.create_story(project.id, title="Queue songs")
        await storywire.update_story(story.id, status="in-progress")

Documents:
    - Project: Owns stories and the optional webhook URL
    - Story: Work item whose status is watched
    - WebhookEvent: Durable record of one status change and its delivery

Receivers verify the ``X-Signature`` header with
``storywire.webhooks.verify_signature``.
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    DeliveryError,
    NotFoundError,
    StorageError,
    StorywireError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import (
    DeliveryStatus,
    Project,
    Story,
    StoryStatus,
    WebhookEvent,
    WebhookPayload,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "StorywireError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "ConfigurationError",
    "DeliveryError",
    # Logging
    "configure_logging",
    "get_logger",
    "logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    # Models
    "DeliveryStatus",
    "Project",
    "Story",
    "StoryStatus",
    "WebhookEvent",
    "WebhookPayload",
]
