"""
revision_engines.approval_chain -- Approval chain builder and advancer.

Responsibility:
    Build an ordered chain of approval steps from the configured approver
    list, and advance it one decision at a time until it completes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import revision_kernel/domain types and kernel exceptions.

Invariants enforced:
    - One step per approver, ordered by level ascending; levels need not
      be contiguous but must be unique.
    - Only the step at ``current_level`` may be decided, and only while it
      is pending.  Approving out of turn is refused here, not just hidden
      in a UI.
    - ``current_level`` never decreases; once ``is_complete`` no further
      advance succeeds.
    - reject and request_changes both mark the step rejected and
      short-circuit the remaining levels.
    - Purity: the caller supplies ``chain_id`` and ``now``.

Failure modes:
    - InvalidApprovalChainError: no approvers, or two approvers share a level.
    - OutOfOrderApprovalError: ``level`` is not the chain's current level.
    - StaleApprovalStepError: chain already complete, or step not pending.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Sequence

from revision_engines.tracer import traced_engine
from revision_kernel.domain.approval import (
    ApprovalAction,
    ApprovalChain,
    ApprovalStep,
    ApprovalStepStatus,
    Approver,
    ChainOutcome,
)
from revision_kernel.exceptions import (
    InvalidApprovalChainError,
    OutOfOrderApprovalError,
    StaleApprovalStepError,
)


@traced_engine("approval_chain.build", "1.0", fingerprint_fields=("revision_id", "approvers"))
def build_chain(
    *,
    revision_id: str,
    approvers: Sequence[Approver],
    chain_id: str,
    now: datetime,
) -> ApprovalChain:
    """One pending step per approver, ``current_level`` at the lowest level."""
    if not approvers:
        raise InvalidApprovalChainError(revision_id, "no approvers configured")

    levels = [a.level for a in approvers]
    if len(set(levels)) != len(levels):
        duplicates = sorted({lv for lv in levels if levels.count(lv) > 1})
        raise InvalidApprovalChainError(
            revision_id, f"duplicate approver levels {duplicates}"
        )

    steps = tuple(
        ApprovalStep(level=a.level, approver=a)
        for a in sorted(approvers, key=lambda a: a.level)
    )
    return ApprovalChain(
        chain_id=chain_id,
        revision_id=revision_id,
        steps=steps,
        current_level=steps[0].level,
        started_at=now,
    )


@traced_engine("approval_chain.advance", "1.0", fingerprint_fields=("level", "action"))
def advance_chain(
    chain: ApprovalChain,
    *,
    level: int,
    action: ApprovalAction,
    actor_id: str,
    notes: str | None,
    now: datetime,
) -> ApprovalChain:
    """Record ``action`` at ``level`` and return the advanced chain.

    The input chain is never modified.
    """
    if chain.is_complete:
        raise StaleApprovalStepError(chain.chain_id, level, "chain is already complete")
    if level != chain.current_level:
        raise OutOfOrderApprovalError(chain.chain_id, level, chain.current_level)

    step = chain.step_at(level)
    if step is None or not step.is_pending:
        raise StaleApprovalStepError(chain.chain_id, level, "step is not pending")

    decided_status = (
        ApprovalStepStatus.APPROVED
        if action == ApprovalAction.APPROVE
        else ApprovalStepStatus.REJECTED
    )
    decided = replace(
        step,
        status=decided_status,
        action=action,
        notes=notes,
        action_date=now,
        action_by=actor_id,
    )
    steps = tuple(decided if s.level == level else s for s in chain.steps)

    if decided_status == ApprovalStepStatus.REJECTED:
        return replace(
            chain,
            steps=steps,
            is_complete=True,
            completed_at=now,
            outcome=ChainOutcome.REJECTED,
        )

    remaining = [s.level for s in steps if s.is_pending]
    if not remaining:
        return replace(
            chain,
            steps=steps,
            is_complete=True,
            completed_at=now,
            outcome=ChainOutcome.APPROVED,
        )
    return replace(chain, steps=steps, current_level=min(remaining))
