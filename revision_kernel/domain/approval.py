"""
Approval domain types (``revision_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for revision approval routing: who approves
(``Approver``), who is acting (``CurrentUser``), the current routing of a
submitted revision (``ApprovalChain`` of ``ApprovalStep``) and the history
of submission attempts (``ApprovalCycle``).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Steps are ordered by ``level`` ascending, one approver per level.
* While a chain is not complete, ``current_level`` is the lowest level
  whose step is still pending.
* A chain is complete iff every step is approved (outcome ``approved``)
  or any step is rejected (outcome ``rejected``).
* A chain is the *current* routing; cycles are the *history* of attempts.
  A closed cycle keeps a snapshot of the chain it was routed through.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ApprovalStepStatus(str, Enum):
    """Status of a single approval step."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(str, Enum):
    """Decision an approver can take at their step."""

    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"


class ChainOutcome(str, Enum):
    """Final outcome of a completed approval chain."""

    APPROVED = "approved"
    REJECTED = "rejected"


class CycleOutcome(str, Enum):
    """Outcome of one submission attempt."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"


# =========================================================================
# People
# =========================================================================


@dataclass(frozen=True)
class Approver:
    """A configured approver occupying one level of the chain."""

    approver_id: str
    name: str
    role: str
    level: int
    email: str | None = None


@dataclass(frozen=True)
class CurrentUser:
    """The user performing an action.

    Passed explicitly into every permission check and transition; there is
    no ambient "current user".
    """

    user_id: str
    name: str
    role: str
    is_approver: bool = False
    approver_level: int | None = None


# =========================================================================
# Chain and steps
# =========================================================================


@dataclass(frozen=True)
class ApprovalStep:
    """One level of an approval chain. Immutable; replaced on decision."""

    level: int
    approver: Approver
    status: ApprovalStepStatus = ApprovalStepStatus.PENDING
    action: ApprovalAction | None = None
    notes: str | None = None
    action_date: datetime | None = None
    action_by: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStepStatus.PENDING


@dataclass(frozen=True)
class ApprovalChain:
    """Current routing of a submitted revision through its approvers."""

    chain_id: str
    revision_id: str
    steps: tuple[ApprovalStep, ...]
    current_level: int
    started_at: datetime
    is_complete: bool = False
    completed_at: datetime | None = None
    outcome: ChainOutcome | None = None

    def step_at(self, level: int) -> ApprovalStep | None:
        for step in self.steps:
            if step.level == level:
                return step
        return None

    @property
    def current_step(self) -> ApprovalStep | None:
        """The pending step awaiting a decision, or None when complete."""
        if self.is_complete:
            return None
        return self.step_at(self.current_level)

    @property
    def pending_levels(self) -> tuple[int, ...]:
        return tuple(s.level for s in self.steps if s.is_pending)


@dataclass(frozen=True)
class ApprovalCycle:
    """One submit-to-resolution attempt.

    Appended on every submission; closed (reviewer, outcome, feedback) when
    the chain completes.  ``chain`` holds the snapshot of the routing once
    the cycle is closed.
    """

    cycle_id: str
    cycle_number: int
    submitted_at: datetime
    submitted_by: str
    submission_notes: str | None = None
    outcome: CycleOutcome = CycleOutcome.PENDING
    reviewed_by: str | None = None
    reviewer_role: str | None = None
    reviewed_at: datetime | None = None
    feedback: str | None = None
    chain: ApprovalChain | None = None

    @property
    def is_open(self) -> bool:
        return self.outcome == CycleOutcome.PENDING
