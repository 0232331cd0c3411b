"""
Approval routing across approver layouts.

The configured approver list may skip levels and may name the same person
at more than one level.  For every layout the chain must be completable,
and ``get_permissions(...).can_approve`` must agree with whether
``approve`` actually goes through.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from revision_kernel.domain.approval import Approver, ChainOutcome, CurrentUser
from revision_kernel.domain.clock import DeterministicClock
from revision_kernel.domain.ids import SequentialIdGenerator
from revision_kernel.domain.revision import RevisionStatus
from revision_kernel.exceptions import OutOfOrderApprovalError, RevisionKernelError
from revision_kernel.services.repository import InMemoryRevisionRepository
from revision_kernel.services.revision_service import RevisionLifecycleService

ORDER = "PO-LAYOUT-1"

LAYOUTS = {
    "contiguous": [("mgr", 1), ("fin", 2), ("dir", 3)],
    "gaps": [("mgr", 10), ("fin", 20), ("dir", 50)],
    "same_approver_split": [("mgr", 1), ("fin", 2), ("mgr", 3)],
    "same_approver_adjacent": [("mgr", 1), ("mgr", 2), ("fin", 3)],
    "single": [("mgr", 5)],
}


# =========================================================================
# Helpers
# =========================================================================


def make_approvers(layout):
    return tuple(
        Approver(approver_id, approver_id.title(), "Approver", level)
        for approver_id, level in layout
    )


def users_for(approvers):
    """One CurrentUser per distinct approver id, at their lowest level."""
    users = {}
    for approver in sorted(approvers, key=lambda a: a.level):
        users.setdefault(
            approver.approver_id,
            CurrentUser(approver.approver_id, approver.name, approver.role, True, approver.level),
        )
    return list(users.values())


def submitted_service(approvers, purchasing_agent, standard_lines):
    repository = InMemoryRevisionRepository()
    service = RevisionLifecycleService(
        repository,
        approvers,
        clock=DeterministicClock(),
        id_generator=SequentialIdGenerator(),
    )
    service.open_order(ORDER, standard_lines, purchasing_agent)
    service.create_draft(ORDER, purchasing_agent)
    lines = service.get_draft(ORDER).line_items
    service.update_line_items(
        ORDER,
        (replace(lines[0], quantity=Decimal("120")),) + tuple(lines[1:]),
        purchasing_agent,
    )
    service.submit_for_approval(ORDER, purchasing_agent)
    return service, repository


# =========================================================================
# Tests
# =========================================================================


class TestApproverLayouts:

    @pytest.mark.parametrize("layout", list(LAYOUTS.values()), ids=list(LAYOUTS))
    def test_can_approve_matches_approve(self, layout, purchasing_agent, standard_lines):
        approvers = make_approvers(layout)
        service, repository = submitted_service(approvers, purchasing_agent, standard_lines)
        users = users_for(approvers)
        decided_levels = []

        while service.get_draft(ORDER).status == RevisionStatus.PENDING_APPROVAL:
            allowed = [u for u in users if service.get_permissions(ORDER, u).can_approve]
            assert len(allowed) == 1

            for user in users:
                if user in allowed:
                    continue
                before = repository.load(ORDER)
                with pytest.raises(RevisionKernelError):
                    service.approve(ORDER, user)
                assert repository.load(ORDER) == before

            level = service.get_draft(ORDER).approval_chain.current_level
            service.approve(ORDER, allowed[0])
            decided_levels.append(level)

        draft = service.get_draft(ORDER)
        assert draft.status == RevisionStatus.APPROVED
        assert draft.approval_chain.outcome == ChainOutcome.APPROVED
        assert decided_levels == sorted(level for _, level in layout)

    def test_same_approver_decides_each_of_their_levels(self, purchasing_agent, standard_lines):
        approvers = make_approvers(LAYOUTS["same_approver_split"])
        service, _ = submitted_service(approvers, purchasing_agent, standard_lines)
        mgr, fin = users_for(approvers)

        service.approve(ORDER, mgr)
        service.approve(ORDER, fin)
        assert service.get_permissions(ORDER, mgr).can_approve

        approved = service.approve(ORDER, mgr, notes="Final sign-off")

        assert approved.status == RevisionStatus.APPROVED
        steps = approved.approval_chain.steps
        assert [s.action_by for s in steps] == ["mgr", "fin", "mgr"]
        assert steps[2].notes == "Final sign-off"

    def test_same_approver_cannot_jump_ahead(self, purchasing_agent, standard_lines):
        approvers = make_approvers(LAYOUTS["same_approver_split"])
        service, repository = submitted_service(approvers, purchasing_agent, standard_lines)
        mgr, _ = users_for(approvers)

        service.approve(ORDER, mgr)
        before = repository.load(ORDER)

        assert not service.get_permissions(ORDER, mgr).can_approve
        with pytest.raises(OutOfOrderApprovalError):
            service.approve(ORDER, mgr)
        assert repository.load(ORDER) == before

    def test_same_approver_rejects_at_later_level(self, purchasing_agent, standard_lines):
        approvers = make_approvers(LAYOUTS["same_approver_split"])
        service, _ = submitted_service(approvers, purchasing_agent, standard_lines)
        mgr, fin = users_for(approvers)

        service.approve(ORDER, mgr)
        service.approve(ORDER, fin)
        rejected = service.reject(ORDER, mgr, notes="Budget moved")

        assert rejected.status == RevisionStatus.REJECTED
        assert rejected.approval_chain.step_at(3).action_by == "mgr"
