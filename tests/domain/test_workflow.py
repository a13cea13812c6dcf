"""Tests for the purchase order lifecycle table."""

import pytest

from purchasing_kernel.domain.workflow import (
    PURCHASE_ORDER_WORKFLOW,
    RECEIVABLE_STATES,
    Transition,
    Workflow,
    validate_transition,
)
from purchasing_kernel.exceptions import InvalidTransitionError

ALL_STATES = PURCHASE_ORDER_WORKFLOW.states

ALLOWED = {
    ("draft", "sent"),
    ("sent", "confirmed"),
    ("sent", "cancelled"),
    ("confirmed", "partially_received"),
    ("confirmed", "received"),
    ("confirmed", "cancelled"),
    ("partially_received", "received"),
    ("partially_received", "cancelled"),
}

DERIVED = {
    ("confirmed", "partially_received"),
    ("confirmed", "received"),
    ("partially_received", "received"),
}


class TestTransitionTable:

    @pytest.mark.parametrize("from_state", ALL_STATES)
    @pytest.mark.parametrize("to_state", ALL_STATES)
    def test_can_transition_matches_table(self, from_state, to_state):
        expected = (from_state, to_state) in ALLOWED
        assert PURCHASE_ORDER_WORKFLOW.can_transition(from_state, to_state) is expected

    def test_terminal_states_have_no_targets(self):
        for state in ("received", "cancelled"):
            assert PURCHASE_ORDER_WORKFLOW.is_terminal(state)
            assert PURCHASE_ORDER_WORKFLOW.allowed_targets(state) == frozenset()

    def test_allowed_targets_from_confirmed(self):
        assert PURCHASE_ORDER_WORKFLOW.allowed_targets("confirmed") == {
            "partially_received", "received", "cancelled",
        }

    def test_initial_state_is_draft(self):
        assert PURCHASE_ORDER_WORKFLOW.initial_state == "draft"

    def test_receivable_states(self):
        assert RECEIVABLE_STATES == {"confirmed", "partially_received"}


class TestValidateTransition:

    def test_sent_to_draft_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition("sent", "draft", explicit=True)
        assert exc_info.value.current_status == "sent"
        assert exc_info.value.requested_status == "draft"

    def test_same_state_rejected(self):
        with pytest.raises(InvalidTransitionError):
            validate_transition("confirmed", "confirmed", explicit=True)

    @pytest.mark.parametrize("edge", sorted(DERIVED))
    def test_derived_edges_rejected_when_explicit(self, edge):
        with pytest.raises(InvalidTransitionError):
            validate_transition(*edge, explicit=True)

    @pytest.mark.parametrize("edge", sorted(DERIVED))
    def test_derived_edges_allowed_for_reconciliation(self, edge):
        transition = validate_transition(*edge, explicit=False)
        assert transition.derived

    def test_explicit_edge_returns_action(self):
        assert validate_transition("draft", "sent", explicit=True).action == "send"
        assert validate_transition("sent", "confirmed", explicit=True).action == "confirm"


class TestWorkflowValidation:

    def test_unknown_state_in_transition_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    def test_terminal_state_with_outgoing_edge_rejected(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("b", "a", action="back"),),
                terminal_states=("b",),
            )

    def test_initial_state_must_exist(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(name="broken", description="", initial_state="x", states=("a",), transitions=())
