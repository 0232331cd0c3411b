"""
Pure domain layer.

Immutable value objects and workflow definitions with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (except SystemClock)
"""

from revision_kernel.domain.approval import (
    ApprovalAction,
    ApprovalChain,
    ApprovalCycle,
    ApprovalStep,
    ApprovalStepStatus,
    Approver,
    ChainOutcome,
    CurrentUser,
    CycleOutcome,
)
from revision_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from revision_kernel.domain.events import (
    EventPublisher,
    InMemoryEventPublisher,
    RevisionEvent,
    RevisionEventType,
)
from revision_kernel.domain.ids import IdGenerator, SequentialIdGenerator, UUIDIdGenerator
from revision_kernel.domain.revision import (
    AuditAction,
    AuditLogEntry,
    ChangeField,
    ChangeInput,
    EditType,
    LineItem,
    OrderRevisionState,
    Revision,
    RevisionChange,
    RevisionIssue,
    RevisionStatus,
    RevisionTimeline,
    derive_timestamps,
    replay_status,
)
from revision_kernel.domain.workflow import REVISION_WORKFLOW, Transition, Workflow, find_transition

__all__ = [
    # Approval
    "ApprovalAction",
    "ApprovalChain",
    "ApprovalCycle",
    "ApprovalStep",
    "ApprovalStepStatus",
    "Approver",
    "ChainOutcome",
    "CurrentUser",
    "CycleOutcome",
    # Time and ids
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "IdGenerator",
    "SequentialIdGenerator",
    "UUIDIdGenerator",
    # Events
    "EventPublisher",
    "InMemoryEventPublisher",
    "RevisionEvent",
    "RevisionEventType",
    # Revisions
    "AuditAction",
    "AuditLogEntry",
    "ChangeField",
    "ChangeInput",
    "EditType",
    "LineItem",
    "OrderRevisionState",
    "Revision",
    "RevisionChange",
    "RevisionIssue",
    "RevisionStatus",
    "RevisionTimeline",
    "derive_timestamps",
    "replay_status",
    # Workflow
    "REVISION_WORKFLOW",
    "Transition",
    "Workflow",
    "find_transition",
]
