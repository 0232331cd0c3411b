"""
Revision events (``revision_kernel.domain.events``).

Notifications emitted after a transition commits, for downstream
listeners (email, dashboards).  Publishing is best-effort: a publisher
failure never rolls back or fails the transition that produced the event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class RevisionEventType(str, Enum):
    DRAFT_CREATED = "revision.draft_created"
    CHANGE_RECORDED = "revision.change_recorded"
    SUBMITTED = "revision.submitted"
    STEP_APPROVED = "revision.step_approved"
    APPROVED = "revision.approved"
    REJECTED = "revision.rejected"
    CHANGES_REQUESTED = "revision.changes_requested"
    SENT = "revision.sent"
    CONFIRMED = "revision.confirmed"
    DISCARDED = "revision.discarded"


@dataclass(frozen=True)
class RevisionEvent:
    event_id: str
    event_type: RevisionEventType
    order_number: str
    revision_id: str
    version: str
    status: str | None
    actor_id: str
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


class EventPublisher(Protocol):
    """Downstream sink for committed revision events."""

    def publish(self, event: RevisionEvent) -> None:
        ...


class InMemoryEventPublisher:
    """Collects published events in a list (tests, single-process demos)."""

    def __init__(self) -> None:
        self.events: list[RevisionEvent] = []

    def publish(self, event: RevisionEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: RevisionEventType) -> list[RevisionEvent]:
        return [e for e in self.events if e.event_type == event_type]
