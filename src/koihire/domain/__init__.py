"""Domain layer — pure business logic with zero framework dependencies."""

from koihire.domain.enums import (
    DisputeOutcome,
    EscrowStatus,
    NotificationCategory,
    NotificationType,
    ProjectStatus,
    ServiceOrderStatus,
    TransactionStatus,
    TransactionType,
    WorkItemKind,
)
from koihire.domain.exceptions import (
    DuplicateOperationError,
    ForbiddenError,
    InvalidItemTypeError,
    InvalidStateTransitionError,
    KoiHireError,
    NotFoundError,
    UnauthorizedError,
    UpstreamFailureError,
    ValidationError,
)
from koihire.domain.pricing import ChargeBreakdown, compute_charge_breakdown
from koihire.domain.state_machine import (
    EscrowStateMachine,
    ProjectStateMachine,
    ServiceOrderStateMachine,
    validate_transition,
)

__all__ = [
    "DisputeOutcome",
    "EscrowStatus",
    "NotificationCategory",
    "NotificationType",
    "ProjectStatus",
    "ServiceOrderStatus",
    "TransactionStatus",
    "TransactionType",
    "WorkItemKind",
    "DuplicateOperationError",
    "ForbiddenError",
    "InvalidItemTypeError",
    "InvalidStateTransitionError",
    "KoiHireError",
    "NotFoundError",
    "UnauthorizedError",
    "UpstreamFailureError",
    "ValidationError",
    "ChargeBreakdown",
    "compute_charge_breakdown",
    "EscrowStateMachine",
    "ProjectStateMachine",
    "ServiceOrderStateMachine",
    "validate_transition",
]
