"""Database infrastructure — engine, ORM models, and repositories."""

from koihire.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
)
from koihire.infrastructure.database.orm_models import (
    Base,
    Escrow,
    Notification,
    Project,
    Service,
    ServiceOrder,
    ServicePackage,
    Transaction,
    User,
    WorkItemNote,
)
from koihire.infrastructure.database.repositories import (
    EscrowRepository,
    NotificationRepository,
    ProjectRepository,
    ServiceOrderRepository,
    TransactionRepository,
    UserRepository,
    WorkItemNoteRepository,
)

__all__ = [
    "Base",
    "Escrow",
    "Notification",
    "Project",
    "Service",
    "ServiceOrder",
    "ServicePackage",
    "Transaction",
    "User",
    "WorkItemNote",
    "EscrowRepository",
    "NotificationRepository",
    "ProjectRepository",
    "ServiceOrderRepository",
    "TransactionRepository",
    "UserRepository",
    "WorkItemNoteRepository",
    "get_async_session",
    "init_db",
    "close_db",
]
