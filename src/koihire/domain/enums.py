"""Domain enumerations for the KoiHire marketplace.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class UserRole(enum.StrEnum):
    CLIENT = "CLIENT"
    FREELANCER = "FREELANCER"
    ADMIN = "ADMIN"


class ProjectStatus(enum.StrEnum):
    """Lifecycle states of a client-posted project.

    Transitions are enforced by ProjectStateMachine (domain/state_machine.py).
    """

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    PAUSED = "PAUSED"
    DISPUTED = "DISPUTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ServiceOrderStatus(enum.StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PackageTier(enum.StrEnum):
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class EscrowStatus(enum.StrEnum):
    """Lifecycle states of a project escrow.

    RELEASED and REFUNDED are terminal. See EscrowStateMachine for the
    transition table.
    """

    PENDING = "PENDING"
    FUNDED = "FUNDED"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"
    DISPUTED = "DISPUTED"


class DisputeOutcome(enum.StrEnum):
    """How an admin settles a DISPUTED escrow."""

    RELEASE = "RELEASE"  # pay the freelancer, project COMPLETED
    REFUND = "REFUND"  # return the charge to the client
    RESUME = "RESUME"  # keep the funds held, work continues


class TransactionType(enum.StrEnum):
    """Ledger entry kinds.

    WITHDRAWAL is a payout credited to a freelancer; the sum of a user's
    COMPLETED withdrawals is their lifetime earnings.
    """

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    FEE = "FEE"
    REFUND = "REFUND"


class TransactionStatus(enum.StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class NotificationType(enum.StrEnum):
    """Backend event kinds surfaced to users as notifications."""

    # Applications
    NEW_APPLICATION = "NEW_APPLICATION"
    APPLICATION_ACCEPTED = "APPLICATION_ACCEPTED"
    APPLICATION_REJECTED = "APPLICATION_REJECTED"

    # Projects
    FREELANCER_HIRED = "FREELANCER_HIRED"
    PROJECT_UPDATE = "PROJECT_UPDATE"
    SUBMISSION_RECEIVED = "SUBMISSION_RECEIVED"
    WORK_APPROVED = "WORK_APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    PROJECT_COMPLETED = "PROJECT_COMPLETED"
    PROJECT_CANCELLED = "PROJECT_CANCELLED"

    # Payments
    ESCROW_FUNDED = "ESCROW_FUNDED"
    PAYMENT_RELEASED = "PAYMENT_RELEASED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"

    # Service orders
    SERVICE_ORDER_RECEIVED = "SERVICE_ORDER_RECEIVED"
    SERVICE_ORDER_ACCEPTED = "SERVICE_ORDER_ACCEPTED"
    SERVICE_ORDER_DELIVERED = "SERVICE_ORDER_DELIVERED"
    SERVICE_ORDER_REVISION_REQUESTED = "SERVICE_ORDER_REVISION_REQUESTED"
    SERVICE_ORDER_COMPLETED = "SERVICE_ORDER_COMPLETED"
    SERVICE_ORDER_CANCELLED = "SERVICE_ORDER_CANCELLED"

    # Misc
    MESSAGE = "MESSAGE"
    SYSTEM = "SYSTEM"


class NotificationCategory(enum.StrEnum):
    """Display buckets used by the notification center."""

    APPLICATION = "application"
    PROJECT = "project"
    PAYMENT = "payment"
    SYSTEM = "system"


class NotificationPriority(enum.StrEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class WorkItemKind(enum.StrEnum):
    """Discriminator for the unified active-work feed."""

    PROJECT = "PROJECT"
    SERVICE = "SERVICE"


class ActiveWorkFilter(enum.StrEnum):
    ALL = "all"
    PROJECTS = "projects"
    SERVICES = "services"
