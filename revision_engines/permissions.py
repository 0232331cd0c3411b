"""
revision_engines.permissions -- Role-based permission computation.

Responsibility:
    Decide which revision actions the acting user may take right now, from
    (user, revision, chain) and the derived ``requires_approval`` flag.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Exclusivity: ``can_edit`` requires a non-approver and ``can_approve``
      requires an approver, so both are never true together.
    - ``can_approve`` only for the approver of the step at the chain's
      current level, and only while the revision is pending approval.
    - ``can_submit`` and ``can_skip_approval`` are mutually exclusive via
      ``requires_approval``.
    - ``requires_approval`` is derived, never stored: any critical change,
      or the cost delta exceeding its threshold.

Failure modes:
    (none -- always returns a RevisionPermissions)
"""

from __future__ import annotations

from dataclasses import dataclass

from revision_engines.change_detection import has_critical_change
from revision_engines.cost_delta import CostDelta
from revision_kernel.domain.approval import ApprovalChain, CurrentUser
from revision_kernel.domain.revision import EDITABLE_STATUSES, Revision, RevisionStatus


@dataclass(frozen=True)
class RevisionPermissions:
    """Actions currently permitted for one user on one order."""

    can_edit: bool = False
    can_submit: bool = False
    can_approve: bool = False
    can_send_onward: bool = False
    can_skip_approval: bool = False
    can_discard: bool = False

    def allowed_actions(self) -> tuple[str, ...]:
        return tuple(
            name for name, value in (
                ("edit", self.can_edit),
                ("submit", self.can_submit),
                ("approve", self.can_approve),
                ("send_onward", self.can_send_onward),
                ("skip_approval", self.can_skip_approval),
                ("discard", self.can_discard),
            ) if value
        )


NO_PERMISSIONS = RevisionPermissions()


def requires_approval(revision: Revision, cost_delta: CostDelta | None) -> bool:
    """True iff any change is critical or the cost delta exceeds its threshold."""
    if has_critical_change(revision.changes):
        return True
    return cost_delta is not None and cost_delta.exceeds_threshold


def compute_permissions(
    user: CurrentUser,
    revision: Revision | None,
    chain: ApprovalChain | None,
    *,
    requires_approval: bool,
) -> RevisionPermissions:
    """Compute the permission set for ``user``.

    Args:
        user: The acting user.
        revision: The order's draft-family revision, or None if none exists.
        chain: The revision's current approval chain, if any.
        requires_approval: Derived flag, see ``requires_approval()``.
    """
    if revision is None or not revision.is_draft_family:
        return NO_PERMISSIONS

    status = revision.status
    editable = status in EDITABLE_STATUSES
    has_changes = bool(revision.changes)

    can_edit = not user.is_approver and editable
    can_submit = can_edit and has_changes and requires_approval

    can_approve = False
    if user.is_approver and status == RevisionStatus.PENDING_APPROVAL and chain is not None:
        step = chain.current_step
        can_approve = (
            step is not None
            and step.is_pending
            and step.approver.approver_id == user.user_id
        )

    can_skip = (
        not user.is_approver
        and status == RevisionStatus.DRAFT
        and has_changes
        and not requires_approval
    )

    return RevisionPermissions(
        can_edit=can_edit,
        can_submit=can_submit,
        can_approve=can_approve,
        can_send_onward=status == RevisionStatus.APPROVED,
        can_skip_approval=can_skip,
        can_discard=editable,
    )
