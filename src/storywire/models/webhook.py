"""Webhook event records and outbound payloads.

A WebhookEvent is written once per detected status change and then only
mutated through ``advance``, which enforces the delivery state machine:

    pending -> retrying* -> delivered | failed

Terminal states never change.
"""

from datetime import datetime
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .base import ensure_utc, generate_id, utc_now
from .story import Story, StoryStatus

# Event types that can be delivered
EventType = Literal["state-transition"]

# Delivery status
DeliveryStatus = Literal["pending", "retrying", "delivered", "failed"]

TERMINAL_STATUSES: frozenset[DeliveryStatus] = frozenset({"delivered", "failed"})

_ALLOWED_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    "pending": frozenset({"retrying", "delivered", "failed"}),
    "retrying": frozenset({"retrying", "delivered", "failed"}),
    "delivered": frozenset(),
    "failed": frozenset(),
}


def can_transition(current: DeliveryStatus, new: DeliveryStatus) -> bool:
    """Check whether the delivery state machine allows ``current -> new``."""
    return new in _ALLOWED_TRANSITIONS[current]


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision.

    Example: "2026-02-09T12:34:56.789Z"
    """
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WebhookPayload(BaseModel):
    """Body POSTed to the project's webhook URL.

    Serialized with camelCase keys. Internal record fields (id, attempts,
    delivery status) are deliberately absent.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    short_id: str
    project_id: str
    old_status: StoryStatus
    new_status: StoryStatus
    assigned_agent: str | None
    epic_name: str | None
    timestamp: datetime

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    def to_bytes(self) -> bytes:
        """Serialize to the exact bytes that are signed and transmitted."""
        return self.model_dump_json(by_alias=True).encode("utf-8")


class WebhookEvent(BaseModel):
    """Durable record of one detected status change and its delivery.

    Attributes:
        id: Unique identifier for this event.
        event_type: Event type (currently only "state-transition").
        story_id: Story whose status changed.
        short_id: Story display ID (e.g. "JB-1").
        project_id: Owning project.
        old_status: Status before the change.
        new_status: Status after the change.
        assigned_agent: Agent assigned at the time of the change.
        epic_name: Epic grouping label at the time of the change.
        status: Delivery status (pending, retrying, delivered, failed).
        error: Last delivery error, if any.
        created_at: When the event was recorded.
        attempted_at: When the dispatcher last wrote a delivery outcome.
        attempts: Number of delivery attempts made so far.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("evt"))
    event_type: EventType = Field(default="state-transition", description="Event type")
    story_id: str = Field(description="Story document ID")
    short_id: str = Field(description="Story display ID")
    project_id: str = Field(description="Owning project ID")
    old_status: StoryStatus = Field(description="Previous story status")
    new_status: StoryStatus = Field(description="New story status")
    assigned_agent: str | None = Field(default=None, description="Assigned agent")
    epic_name: str | None = Field(default=None, description="Epic grouping label")
    status: DeliveryStatus = Field(default="pending", description="Delivery status")
    error: str | None = Field(default=None, description="Last delivery error")
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the event was recorded",
    )
    attempted_at: datetime | None = Field(
        default=None,
        description="When delivery was last attempted",
    )
    attempts: int = Field(default=0, ge=0, description="Delivery attempts made")

    @field_validator("created_at", "attempted_at")
    @classmethod
    def _normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _require_transition(self) -> "WebhookEvent":
        if self.old_status == self.new_status:
            raise ValueError(
                f"old_status and new_status must differ (both {self.old_status!r})"
            )
        return self

    @classmethod
    def from_transition(cls, before: Story, after: Story) -> "WebhookEvent":
        """Create a pending event for a status change between two snapshots."""
        return cls(
            story_id=after.id,
            short_id=after.short_id,
            project_id=after.project_id,
            old_status=before.status,
            new_status=after.status,
            assigned_agent=after.assigned_agent or None,
            epic_name=after.epic_name or None,
        )

    @property
    def is_terminal(self) -> bool:
        """Whether delivery has finished (delivered or failed)."""
        return self.status in TERMINAL_STATUSES

    def to_payload(self) -> WebhookPayload:
        """Build the outbound payload from the public fields."""
        return WebhookPayload(
            short_id=self.short_id,
            project_id=self.project_id,
            old_status=self.old_status,
            new_status=self.new_status,
            assigned_agent=self.assigned_agent,
            epic_name=self.epic_name,
            timestamp=self.created_at,
        )

    def advance(
        self,
        status: DeliveryStatus,
        attempts: int | None = None,
        error: str | None = None,
    ) -> bool:
        """Move the delivery status forward, compare-and-set style.

        The write is applied only if the state machine allows it. The attempt
        counter never decreases: it becomes ``max(current, attempts)``.

        Args:
            status: Target delivery status.
            attempts: Attempt number reached, or None to leave unchanged.
            error: Error text to record, or None to keep the previous one.

        Returns:
            True if the record changed, False if the write was rejected
            (including re-writing the terminal state it already holds).
        """
        if not can_transition(self.status, status):
            return False

        self.status = status
        if attempts is not None:
            self.attempts = max(self.attempts, attempts)
        if error is not None:
            self.error = error
        self.attempted_at = utc_now()
        return True


__all__ = [
    "DeliveryStatus",
    "EventType",
    "TERMINAL_STATUSES",
    "WebhookEvent",
    "WebhookPayload",
    "can_transition",
    "format_timestamp",
]
