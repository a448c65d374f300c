"""Tests for the escrow, project and service order state machine guards.

These tests verify that:
    1. All valid transitions are allowed.
    2. All invalid transitions are blocked.
    3. The convenience functions validate_transition / guarded_transition work.
    4. Edge cases (disputes, terminal states) behave correctly.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from koihire.domain.exceptions import InvalidStateTransitionError
from koihire.domain.state_machine import (
    EscrowStateMachine,
    ProjectStateMachine,
    ServiceOrderStateMachine,
    can_transition,
    guarded_transition,
    validate_transition,
)


class TestEscrowHappyPath:
    """PENDING -> FUNDED -> RELEASED."""

    def test_full_lifecycle(self) -> None:
        sm = EscrowStateMachine("PENDING")
        assert sm.status == "PENDING"

        sm.payment_captured()
        assert sm.status == "FUNDED"

        sm.client_approves()
        assert sm.status == "RELEASED"

    def test_default_start_is_pending(self) -> None:
        assert EscrowStateMachine().status == "PENDING"


class TestEscrowRefundAndDispute:
    def test_refund_from_funded(self) -> None:
        sm = EscrowStateMachine("FUNDED")
        sm.refund_issued()
        assert sm.status == "REFUNDED"

    def test_dispute_then_refund(self) -> None:
        sm = EscrowStateMachine("FUNDED")
        sm.dispute_raised()
        assert sm.status == "DISPUTED"
        sm.refund_issued()
        assert sm.status == "REFUNDED"

    def test_dispute_resolved_for_freelancer(self) -> None:
        sm = EscrowStateMachine("DISPUTED")
        sm.dispute_resolved_for_freelancer()
        assert sm.status == "RELEASED"

    def test_dispute_withdrawn_returns_to_funded(self) -> None:
        sm = EscrowStateMachine("DISPUTED")
        sm.dispute_withdrawn()
        assert sm.status == "FUNDED"
        assert "client_approves" in sm.get_allowed_events()


class TestEscrowInvalidTransitions:
    def test_cannot_release_pending(self) -> None:
        sm = EscrowStateMachine("PENDING")
        with pytest.raises(TransitionNotAllowed):
            sm.client_approves()

    def test_cannot_fund_twice(self) -> None:
        sm = EscrowStateMachine("FUNDED")
        with pytest.raises(TransitionNotAllowed):
            sm.payment_captured()

    @pytest.mark.parametrize("terminal", ["RELEASED", "REFUNDED"])
    def test_terminal_states_allow_nothing(self, terminal: str) -> None:
        sm = EscrowStateMachine(terminal)
        assert sm.get_allowed_events() == []
        with pytest.raises(TransitionNotAllowed):
            sm.refund_issued()

    def test_dispute_requires_funded(self) -> None:
        sm = EscrowStateMachine("PENDING")
        with pytest.raises(TransitionNotAllowed):
            sm.dispute_raised()


class TestProjectMachine:
    def test_hire_then_complete(self) -> None:
        sm = ProjectStateMachine("OPEN")
        sm.freelancer_hired()
        assert sm.status == "IN_PROGRESS"
        sm.work_approved()
        assert sm.status == "COMPLETED"

    def test_pause_and_resume(self) -> None:
        sm = ProjectStateMachine("IN_PROGRESS")
        sm.paused()
        assert sm.status == "PAUSED"
        sm.resumed()
        assert sm.status == "IN_PROGRESS"

    def test_completed_is_final(self) -> None:
        sm = ProjectStateMachine("COMPLETED")
        with pytest.raises(TransitionNotAllowed):
            sm.cancelled()

    def test_paused_project_can_be_approved(self) -> None:
        sm = ProjectStateMachine("PAUSED")
        sm.work_approved()
        assert sm.status == "COMPLETED"

    def test_submit_then_approve(self) -> None:
        sm = ProjectStateMachine("IN_PROGRESS")
        sm.work_submitted()
        assert sm.status == "PENDING_REVIEW"
        with pytest.raises(TransitionNotAllowed):
            sm.paused()
        sm.work_approved()
        assert sm.status == "COMPLETED"

    def test_dispute_resumed(self) -> None:
        sm = ProjectStateMachine("PENDING_REVIEW")
        sm.dispute_raised()
        sm.dispute_resumed()
        assert sm.status == "IN_PROGRESS"


class TestServiceOrderMachine:
    def test_delivery_with_revision(self) -> None:
        sm = ServiceOrderStateMachine()
        sm.accepted()
        sm.started()
        sm.delivered()
        sm.revision_requested()
        assert sm.status == "REVISION_REQUESTED"
        sm.delivered()
        sm.approved()
        assert sm.status == "COMPLETED"

    @pytest.mark.parametrize("status", ["IN_PROGRESS", "DELIVERED", "REVISION_REQUESTED"])
    def test_cancel_only_before_work_starts(self, status: str) -> None:
        assert not can_transition(status, "cancelled", ServiceOrderStateMachine)
        assert can_transition(status, "payment_refunded", ServiceOrderStateMachine)

    def test_cannot_approve_undelivered(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            guarded_transition("IN_PROGRESS", "approved", ServiceOrderStateMachine)

    @pytest.mark.parametrize("terminal", ["COMPLETED", "CANCELLED"])
    def test_terminal_states_allow_nothing(self, terminal: str) -> None:
        assert ServiceOrderStateMachine(terminal).get_allowed_events() == []


class TestValidateTransition:
    def test_valid_returns_new_status(self) -> None:
        assert validate_transition("PENDING", "payment_captured") == "FUNDED"

    def test_project_machine_selected(self) -> None:
        assert validate_transition("OPEN", "freelancer_hired", ProjectStateMachine) == "IN_PROGRESS"

    def test_invalid_raises(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition("RELEASED", "refund_issued")

    def test_unknown_event_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition("FUNDED", "teleport")

    def test_unknown_status_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            validate_transition("BOGUS", "payment_captured")


class TestGuardedTransition:
    def test_valid(self) -> None:
        assert guarded_transition("FUNDED", "client_approves") == "RELEASED"

    def test_invalid_raises_domain_error(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            guarded_transition("RELEASED", "client_approves")
        assert exc_info.value.current_state == "RELEASED"
        assert exc_info.value.attempted == "client_approves"
        assert exc_info.value.status_code == 409

    def test_can_transition(self) -> None:
        assert can_transition("FUNDED", "refund_issued")
        assert not can_transition("RELEASED", "refund_issued")
        assert can_transition("PAUSED", "cancelled", ProjectStateMachine)
        assert not can_transition("COMPLETED", "cancelled", ProjectStateMachine)

    def test_allowed_events_from_funded(self) -> None:
        events = set(EscrowStateMachine("FUNDED").get_allowed_events())
        assert events == {"client_approves", "refund_issued", "dispute_raised"}
