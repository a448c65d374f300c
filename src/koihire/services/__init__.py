"""Application services — use case orchestration."""

from koihire.services.connect_service import ConnectService
from koihire.services.escrow_service import EscrowService
from koihire.services.notification_service import NotificationService
from koihire.services.payment_service import PaymentService
from koihire.services.project_service import ProjectService
from koihire.services.proxy_service import ProxyService
from koihire.services.work_note_service import WorkNoteService
from koihire.services.work_service import WorkService

__all__ = [
    "ConnectService",
    "EscrowService",
    "NotificationService",
    "PaymentService",
    "ProjectService",
    "ProxyService",
    "WorkNoteService",
    "WorkService",
]
