"""Document models for Storywire.

Tracked entities:
    - Project: Owns stories and the optional webhook delivery target
    - Story: Work item whose status changes are watched

Notification records:
    - WebhookEvent: Durable record of one status change and its delivery
    - WebhookPayload: Public body POSTed to the receiver
"""

from .base import ensure_utc, generate_id, utc_now
from .story import Project, Story, StoryStatus
from .webhook import (
    TERMINAL_STATUSES,
    DeliveryStatus,
    EventType,
    WebhookEvent,
    WebhookPayload,
    can_transition,
    format_timestamp,
)

__all__ = [
    # Helpers
    "ensure_utc",
    "generate_id",
    "utc_now",
    # Entities
    "Project",
    "Story",
    "StoryStatus",
    # Webhooks
    "DeliveryStatus",
    "EventType",
    "TERMINAL_STATUSES",
    "WebhookEvent",
    "WebhookPayload",
    "can_transition",
    "format_timestamp",
]
