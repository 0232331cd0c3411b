"""
Revision domain types (``revision_kernel.domain.revision``).

Responsibility
--------------
Pure value objects for order revisions: line items, change records, the
append-only audit log, the revision itself and the per-order aggregate
(active revision, pending draft, confirmed history, open issues).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``domain/approval``.

Invariants enforced
-------------------
* At most one revision per order is in a draft-family status; it lives
  in ``OrderRevisionState.draft``.  Everything in ``history`` is confirmed
  and immutable.
* The audit log is the canonical timeline.  ``created_at``,
  ``submitted_at``, ``approved_at`` and friends are derived from it, never
  stored alongside it.
* ``replay_status(audit_log)`` reconstructs the revision's status; every
  entry's ``from_status`` equals the previous entry's ``to_status``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from revision_kernel.domain.approval import ApprovalChain, ApprovalCycle

CENT = Decimal("0.01")


# =========================================================================
# Status lifecycle
# =========================================================================


class RevisionStatus(str, Enum):
    """Revision lifecycle states."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    SENT = "sent"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


DRAFT_FAMILY_STATUSES: frozenset[RevisionStatus] = frozenset({
    RevisionStatus.DRAFT,
    RevisionStatus.REJECTED,
    RevisionStatus.PENDING_APPROVAL,
    RevisionStatus.APPROVED,
    RevisionStatus.SENT,
})

EDITABLE_STATUSES: frozenset[RevisionStatus] = frozenset({
    RevisionStatus.DRAFT,
    RevisionStatus.REJECTED,
})

TERMINAL_REVISION_STATUSES: frozenset[RevisionStatus] = frozenset({
    RevisionStatus.CONFIRMED,
})


# =========================================================================
# Changes
# =========================================================================


class EditType(str, Enum):
    """Severity of a change; critical changes bump the major version."""

    CRITICAL = "critical"
    NON_CRITICAL = "non_critical"


class ChangeField(str, Enum):
    """Field names the change detector emits."""

    QUANTITY = "quantity"
    UNIT_PRICE = "unit_price"
    DISCOUNT_PERCENT = "discount_percent"
    ADD_LINE = "add_line"
    REMOVE_LINE = "remove_line"
    REQUESTED_DATE = "requested_date"
    PROMISED_DATE = "promised_date"
    NOTES = "notes"


CRITICAL_CHANGE_FIELDS: frozenset[str] = frozenset({
    ChangeField.QUANTITY.value,
    ChangeField.UNIT_PRICE.value,
    ChangeField.DISCOUNT_PERCENT.value,
    ChangeField.ADD_LINE.value,
    ChangeField.REMOVE_LINE.value,
})


@dataclass(frozen=True)
class LineItem:
    """One order line.  ``line_id`` is the stable identity used for diffs."""

    line_id: str
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal = Decimal("0")
    requested_date: date | None = None
    promised_date: date | None = None
    notes: str | None = None

    @property
    def extended_total(self) -> Decimal:
        return (
            self.quantity
            * self.unit_price
            * (Decimal("1") - self.discount_percent / Decimal("100"))
        )


@dataclass(frozen=True)
class ChangeInput:
    """Caller-supplied part of a change; the service stamps id, actor, time."""

    field: str | ChangeField
    previous_value: Any = None
    new_value: Any = None
    line_number: int | None = None
    description: str = ""


@dataclass(frozen=True)
class RevisionChange:
    """One atomic, classified edit recorded on a draft."""

    change_id: str
    field: str
    line_number: int | None
    previous_value: Any
    new_value: Any
    edit_type: EditType
    changed_by: str
    changed_at: datetime
    description: str = ""

    @property
    def is_critical(self) -> bool:
        return self.edit_type == EditType.CRITICAL


# =========================================================================
# Audit log
# =========================================================================


class AuditAction(str, Enum):
    """Audit log actions."""

    CREATED = "created"
    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    STEP_APPROVED = "step_approved"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"
    SENT = "sent"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only record of one status transition (or approval step)."""

    entry_id: str
    action: AuditAction
    date: datetime
    user_id: str
    user: str
    role: str
    from_status: RevisionStatus | None
    to_status: RevisionStatus
    notes: str | None = None


@dataclass(frozen=True)
class RevisionTimeline:
    """Display timestamps derived from an audit log."""

    created_at: datetime | None = None
    created_by: str | None = None
    submitted_at: datetime | None = None
    submitted_by: str | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    sent_at: datetime | None = None
    sent_by: str | None = None
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None


def derive_timestamps(audit_log: tuple[AuditLogEntry, ...]) -> RevisionTimeline:
    """Rebuild the display timeline; later entries win (latest submission etc.)."""
    values: dict[str, Any] = {}
    for entry in audit_log:
        action = entry.action
        if action == AuditAction.CREATED:
            values["created_at"] = entry.date
            values["created_by"] = entry.user
        elif action in (AuditAction.SUBMITTED, AuditAction.RESUBMITTED):
            values["submitted_at"] = entry.date
            values["submitted_by"] = entry.user
        elif action == AuditAction.APPROVED:
            values["approved_at"] = entry.date
        elif action in (AuditAction.REJECTED, AuditAction.CHANGES_REQUESTED):
            values["rejected_at"] = entry.date
        elif action == AuditAction.SENT:
            values["sent_at"] = entry.date
            values["sent_by"] = entry.user
        elif action == AuditAction.CONFIRMED:
            values["confirmed_at"] = entry.date
            values["confirmed_by"] = entry.user
    return RevisionTimeline(**values)


def replay_status(audit_log: tuple[AuditLogEntry, ...]) -> RevisionStatus | None:
    """Reconstruct a revision's status by replaying its audit log.

    Raises:
        ValueError: An entry does not start where the previous one ended.
    """
    status: RevisionStatus | None = None
    for entry in audit_log:
        if entry.from_status != status:
            raise ValueError(
                f"Audit entry {entry.entry_id} starts from "
                f"{entry.from_status}, expected {status}"
            )
        status = entry.to_status
    return status


# =========================================================================
# Revision
# =========================================================================


@dataclass(frozen=True)
class Revision:
    """The unit of work: one version of an order's line items.

    Only the lifecycle service builds new Revision values; everything else
    reads them.
    """

    revision_id: str
    order_number: str
    version: str
    status: RevisionStatus
    line_items: tuple[LineItem, ...] = ()
    changes: tuple[RevisionChange, ...] = ()
    changes_summary: str = "No changes"
    approval_chain: ApprovalChain | None = None
    approval_history: tuple[ApprovalCycle, ...] = ()
    audit_log: tuple[AuditLogEntry, ...] = ()
    base_version: str | None = None

    @property
    def total(self) -> Decimal:
        total = sum((line.extended_total for line in self.line_items), Decimal("0"))
        return total.quantize(CENT, rounding=ROUND_HALF_UP)

    @property
    def has_critical_change(self) -> bool:
        return any(c.is_critical for c in self.changes)

    @property
    def is_draft_family(self) -> bool:
        return self.status in DRAFT_FAMILY_STATUSES

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    @property
    def current_cycle(self) -> ApprovalCycle | None:
        return self.approval_history[-1] if self.approval_history else None

    @property
    def timeline(self) -> RevisionTimeline:
        return derive_timestamps(self.audit_log)

    @property
    def created_at(self) -> datetime | None:
        return self.timeline.created_at

    @property
    def created_by(self) -> str | None:
        return self.timeline.created_by

    @property
    def submitted_at(self) -> datetime | None:
        return self.timeline.submitted_at

    @property
    def submitted_by(self) -> str | None:
        return self.timeline.submitted_by

    @property
    def approved_at(self) -> datetime | None:
        return self.timeline.approved_at

    @property
    def rejected_at(self) -> datetime | None:
        return self.timeline.rejected_at

    @property
    def sent_at(self) -> datetime | None:
        return self.timeline.sent_at

    @property
    def sent_by(self) -> str | None:
        return self.timeline.sent_by

    @property
    def confirmed_at(self) -> datetime | None:
        return self.timeline.confirmed_at

    @property
    def confirmed_by(self) -> str | None:
        return self.timeline.confirmed_by


# =========================================================================
# Per-order aggregate
# =========================================================================


@dataclass(frozen=True)
class RevisionIssue:
    """Open follow-up attached to an order while a draft is in flight."""

    issue_id: str
    kind: str
    title: str
    raised_at: datetime
    raised_by: str
    description: str = ""


@dataclass(frozen=True)
class OrderRevisionState:
    """Everything the lifecycle service owns for one order."""

    order_number: str
    active_revision: Revision
    draft: Revision | None = None
    history: tuple[Revision, ...] = ()
    open_issues: tuple[RevisionIssue, ...] = field(default_factory=tuple)

    @property
    def has_draft(self) -> bool:
        return self.draft is not None
