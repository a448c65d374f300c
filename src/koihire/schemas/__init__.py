"""Pydantic API schemas."""

from koihire.schemas.common import ApiResponse, CamelModel, ErrorResponse, PageInfo
from koihire.schemas.health import HealthResponse
from koihire.schemas.notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from koihire.schemas.payments import (
    ChargeBreakdownResponse,
    ConfirmPaymentRequest,
    ConnectOnboardingResponse,
    ConnectStatusResponse,
    CreateConnectAccountRequest,
    CreatePaymentIntentRequest,
    DisputeRequest,
    EarningsResponse,
    EscrowDetailResponse,
    EscrowResponse,
    PaymentIntentResponse,
    RefundRequest,
    TransactionListResponse,
    TransactionResponse,
    WebhookAck,
)
from koihire.schemas.projects import CreateProjectRequest, HireFreelancerRequest, ProjectResponse
from koihire.schemas.work import (
    ActiveWorkResponse,
    ActiveWorkStats,
    SaveNoteRequest,
    WorkItemResponse,
    WorkNoteResponse,
)

__all__ = [
    "ApiResponse",
    "CamelModel",
    "ErrorResponse",
    "PageInfo",
    "HealthResponse",
    "MarkAllReadResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "UnreadCountResponse",
    "ChargeBreakdownResponse",
    "ConfirmPaymentRequest",
    "ConnectOnboardingResponse",
    "ConnectStatusResponse",
    "CreateConnectAccountRequest",
    "CreatePaymentIntentRequest",
    "DisputeRequest",
    "EarningsResponse",
    "EscrowDetailResponse",
    "EscrowResponse",
    "PaymentIntentResponse",
    "RefundRequest",
    "TransactionListResponse",
    "TransactionResponse",
    "WebhookAck",
    "CreateProjectRequest",
    "HireFreelancerRequest",
    "ProjectResponse",
    "ActiveWorkResponse",
    "ActiveWorkStats",
    "SaveNoteRequest",
    "WorkItemResponse",
    "WorkNoteResponse",
]
