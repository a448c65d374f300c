"""Escrow, Project and Service Order State Machine Guards.

Uses python-statemachine to enforce legal state transitions at the domain level.
No matter what a route handler does, an illegal transition (e.g.,
RELEASED -> REFUNDED) raises TransitionNotAllowed before any row is touched.

The machines are instantiated per-record from the stored status string and
validate transitions before the ORM status field is updated.

Escrow transition table:
    PENDING   -> FUNDED     (payment_captured)
    FUNDED    -> RELEASED   (client_approves)
    FUNDED    -> REFUNDED   (refund_issued)
    FUNDED    -> DISPUTED   (dispute_raised)
    DISPUTED  -> REFUNDED   (refund_issued)
    DISPUTED  -> RELEASED   (dispute_resolved_for_freelancer)
    DISPUTED  -> FUNDED     (dispute_withdrawn)

Project transition table:
    OPEN            -> IN_PROGRESS (freelancer_hired)
    IN_PROGRESS     -> PENDING_REVIEW (work_submitted)
    IN_PROGRESS     -> PAUSED       (paused)
    PAUSED          -> IN_PROGRESS  (resumed)
    IN_PROGRESS     -> DISPUTED     (dispute_raised)
    PENDING_REVIEW  -> DISPUTED     (dispute_raised)
    IN_PROGRESS | PENDING_REVIEW | PAUSED | DISPUTED -> COMPLETED (work_approved)
    DISPUTED        -> IN_PROGRESS  (dispute_resumed)
    OPEN | IN_PROGRESS | PAUSED | DISPUTED -> CANCELLED (cancelled)

Service order transition table:
    PENDING     -> ACCEPTED     (accepted)
    ACCEPTED    -> IN_PROGRESS  (started)
    IN_PROGRESS | REVISION_REQUESTED -> DELIVERED (delivered)
    DELIVERED   -> REVISION_REQUESTED (revision_requested)
    DELIVERED   -> COMPLETED    (approved)
    PENDING | ACCEPTED -> CANCELLED (cancelled)
    any open status -> CANCELLED (payment_refunded)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from koihire.domain.exceptions import InvalidStateTransitionError


class _StatusMachine(StateMachine):
    """Shared helpers for machines that are rebuilt from a stored status string."""

    def __init__(self, current_status: str) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        # start_value expects the string value, not the State object
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches the status enum)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return [str(getattr(event, "id", event.name)) for event in self.allowed_events]


class EscrowStateMachine(_StatusMachine):
    """Guards the escrow lifecycle.

    Usage:
        sm = EscrowStateMachine(current_status="FUNDED")
        sm.client_approves()  # transitions to RELEASED
    """

    # --- States ---
    PENDING = State("PENDING", initial=True)
    FUNDED = State("FUNDED")
    DISPUTED = State("DISPUTED")
    RELEASED = State("RELEASED", final=True)
    REFUNDED = State("REFUNDED", final=True)

    # --- Events / Transitions ---
    payment_captured = PENDING.to(FUNDED)
    client_approves = FUNDED.to(RELEASED)
    refund_issued = FUNDED.to(REFUNDED) | DISPUTED.to(REFUNDED)
    dispute_raised = FUNDED.to(DISPUTED)
    dispute_resolved_for_freelancer = DISPUTED.to(RELEASED)
    dispute_withdrawn = DISPUTED.to(FUNDED)

    def __init__(self, current_status: str = "PENDING") -> None:
        super().__init__(current_status)


class ProjectStateMachine(_StatusMachine):
    """Guards the project lifecycle.

    Status only moves forward, except PAUSED <-> IN_PROGRESS and dispute
    resolution back to IN_PROGRESS. A paused project can still be approved;
    pausing stops work, not payment.
    """

    # --- States ---
    OPEN = State("OPEN", initial=True)
    IN_PROGRESS = State("IN_PROGRESS")
    PENDING_REVIEW = State("PENDING_REVIEW")
    PAUSED = State("PAUSED")
    DISPUTED = State("DISPUTED")
    COMPLETED = State("COMPLETED", final=True)
    CANCELLED = State("CANCELLED", final=True)

    # --- Events / Transitions ---
    freelancer_hired = OPEN.to(IN_PROGRESS)
    work_submitted = IN_PROGRESS.to(PENDING_REVIEW)
    paused = IN_PROGRESS.to(PAUSED)
    resumed = PAUSED.to(IN_PROGRESS)
    dispute_raised = IN_PROGRESS.to(DISPUTED) | PENDING_REVIEW.to(DISPUTED)
    dispute_resumed = DISPUTED.to(IN_PROGRESS)
    work_approved = (
        IN_PROGRESS.to(COMPLETED)
        | PENDING_REVIEW.to(COMPLETED)
        | PAUSED.to(COMPLETED)
        | DISPUTED.to(COMPLETED)
    )
    cancelled = (
        OPEN.to(CANCELLED)
        | IN_PROGRESS.to(CANCELLED)
        | PAUSED.to(CANCELLED)
        | DISPUTED.to(CANCELLED)
    )

    def __init__(self, current_status: str = "OPEN") -> None:
        super().__init__(current_status)


class ServiceOrderStateMachine(_StatusMachine):
    """Guards a purchased package from placement to completion.

    A delivered order loops through REVISION_REQUESTED until the client
    approves it. Refunding the escrow closes the order from any open status.
    """

    PENDING = State("PENDING", initial=True)
    ACCEPTED = State("ACCEPTED")
    IN_PROGRESS = State("IN_PROGRESS")
    DELIVERED = State("DELIVERED")
    REVISION_REQUESTED = State("REVISION_REQUESTED")
    COMPLETED = State("COMPLETED", final=True)
    CANCELLED = State("CANCELLED", final=True)

    accepted = PENDING.to(ACCEPTED)
    started = ACCEPTED.to(IN_PROGRESS)
    delivered = IN_PROGRESS.to(DELIVERED) | REVISION_REQUESTED.to(DELIVERED)
    revision_requested = DELIVERED.to(REVISION_REQUESTED)
    approved = DELIVERED.to(COMPLETED)
    cancelled = PENDING.to(CANCELLED) | ACCEPTED.to(CANCELLED)
    payment_refunded = (
        PENDING.to(CANCELLED)
        | ACCEPTED.to(CANCELLED)
        | IN_PROGRESS.to(CANCELLED)
        | DELIVERED.to(CANCELLED)
        | REVISION_REQUESTED.to(CANCELLED)
    )

    def __init__(self, current_status: str = "PENDING") -> None:
        super().__init__(current_status)


def validate_transition(
    current_status: str,
    event_name: str,
    machine: type[_StatusMachine] = EscrowStateMachine,
) -> str:
    """Validate a state transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns
    the resulting status string.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = machine(current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


def guarded_transition(
    current_status: str,
    event_name: str,
    machine: type[_StatusMachine] = EscrowStateMachine,
) -> str:
    """Same as validate_transition, but speaks the domain error.

    Raises:
        InvalidStateTransitionError: If the event cannot fire from current_status.
    """
    try:
        return validate_transition(current_status, event_name, machine)
    except TransitionNotAllowed as err:
        raise InvalidStateTransitionError(current_status, event_name) from err


def can_transition(
    current_status: str,
    event_name: str,
    machine: type[_StatusMachine] = EscrowStateMachine,
) -> bool:
    return event_name in machine(current_status).get_allowed_events()
