"""
Tests for the revision workflow definition.

The workflow is the single table of legal status transitions; the
lifecycle service refuses any action that is not an edge here.
"""

import pytest

from revision_kernel.domain.revision import RevisionStatus
from revision_kernel.domain.workflow import (
    APPROVAL_NOT_REQUIRED,
    APPROVAL_REQUIRED,
    APPROVER_AT_CURRENT_LEVEL,
    CHAIN_COMPLETE,
    HAS_CHANGES,
    REVISION_WORKFLOW,
    Transition,
    Workflow,
    find_transition,
    unmet_guard,
)

S = RevisionStatus


class TestRevisionWorkflow:

    @pytest.mark.parametrize("from_status,action,to_status", [
        (S.DRAFT, "submit", S.PENDING_APPROVAL),
        (S.REJECTED, "resubmit", S.PENDING_APPROVAL),
        (S.PENDING_APPROVAL, "approve", S.APPROVED),
        (S.PENDING_APPROVAL, "reject", S.REJECTED),
        (S.PENDING_APPROVAL, "request_changes", S.REJECTED),
        (S.DRAFT, "skip_approval", S.APPROVED),
        (S.APPROVED, "send", S.SENT),
        (S.SENT, "confirm", S.CONFIRMED),
    ])
    def test_legal_edges(self, from_status, action, to_status):
        transition = find_transition(REVISION_WORKFLOW, from_status.value, action)
        assert transition is not None
        assert transition.to_state == to_status.value

    @pytest.mark.parametrize("from_status,action", [
        (S.DRAFT, "approve"),
        (S.DRAFT, "send"),
        (S.DRAFT, "confirm"),
        (S.REJECTED, "skip_approval"),
        (S.PENDING_APPROVAL, "send"),
        (S.APPROVED, "confirm"),
        (S.SENT, "approve"),
        (S.CONFIRMED, "submit"),
    ])
    def test_illegal_edges(self, from_status, action):
        assert find_transition(REVISION_WORKFLOW, from_status.value, action) is None

    def test_confirmed_is_terminal(self):
        assert REVISION_WORKFLOW.terminal_states == (S.CONFIRMED.value,)
        assert REVISION_WORKFLOW.actions_from(S.CONFIRMED.value) == ()

    def test_every_status_is_a_state(self):
        assert set(REVISION_WORKFLOW.states) == {s.value for s in RevisionStatus}

    def test_submit_requires_approval(self):
        assert find_transition(REVISION_WORKFLOW, "draft", "submit").requires_approval
        assert not find_transition(REVISION_WORKFLOW, "draft", "skip_approval").requires_approval


class TestWorkflowValidation:

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="bad", description="", initial_state="a", states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    def test_initial_state_must_be_declared(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(name="bad", description="", initial_state="z", states=("a",), transitions=())

    def test_terminal_state_cannot_have_outgoing_edges(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="bad", description="", initial_state="a", states=("a", "b"),
                transitions=(Transition("b", "a", action="reopen"),),
                terminal_states=("b",),
            )


class TestGuards:

    @pytest.mark.parametrize("from_status,action,expected", [
        (S.DRAFT, "submit", (HAS_CHANGES, APPROVAL_REQUIRED)),
        (S.REJECTED, "resubmit", (HAS_CHANGES, APPROVAL_REQUIRED)),
        (S.DRAFT, "skip_approval", (HAS_CHANGES, APPROVAL_NOT_REQUIRED)),
        (S.PENDING_APPROVAL, "approve", (CHAIN_COMPLETE,)),
        (S.PENDING_APPROVAL, "reject", (APPROVER_AT_CURRENT_LEVEL,)),
        (S.PENDING_APPROVAL, "request_changes", (APPROVER_AT_CURRENT_LEVEL,)),
        (S.APPROVED, "send", ()),
        (S.SENT, "confirm", ()),
    ])
    def test_edge_guards(self, from_status, action, expected):
        transition = find_transition(REVISION_WORKFLOW, from_status.value, action)
        assert transition.guards == expected

    def test_all_facts_true_passes(self):
        submit = find_transition(REVISION_WORKFLOW, "draft", "submit")
        facts = {HAS_CHANGES.name: True, APPROVAL_REQUIRED.name: True}
        assert unmet_guard(submit, facts) is None

    def test_first_false_guard_reported(self):
        submit = find_transition(REVISION_WORKFLOW, "draft", "submit")
        facts = {HAS_CHANGES.name: False, APPROVAL_REQUIRED.name: False}
        assert unmet_guard(submit, facts) == HAS_CHANGES

    def test_missing_fact_fails_closed(self):
        skip = find_transition(REVISION_WORKFLOW, "draft", "skip_approval")
        assert unmet_guard(skip, {HAS_CHANGES.name: True}) == APPROVAL_NOT_REQUIRED

    def test_unguarded_edge_needs_no_facts(self):
        send = find_transition(REVISION_WORKFLOW, "approved", "send")
        assert unmet_guard(send, {}) is None
