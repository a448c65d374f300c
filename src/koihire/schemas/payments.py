"""Pydantic schemas for the payments API (escrow, ledger, connect)."""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from pydantic import Field

from koihire.domain.enums import (
    DisputeOutcome,
    EscrowStatus,
    ServiceOrderStatus,
    TransactionStatus,
    TransactionType,
)
from koihire.schemas.common import CamelModel, PageInfo

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreatePaymentIntentRequest(CamelModel):
    project_id: uuid.UUID = Field(..., description="Project to fund")


class CreateOrderPaymentIntentRequest(CamelModel):
    order_id: uuid.UUID = Field(..., description="Service order to pay for")


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Processor payment intent id returned by create-payment-intent",
        examples=["pi_3OqXyZ2eZvKYlo2C1a2b3c4d"],
    )


class RefundRequest(CamelModel):
    reason: str | None = Field(default=None, max_length=1000)


class DisputeRequest(CamelModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class ResolveDisputeRequest(CamelModel):
    outcome: DisputeOutcome
    note: str | None = Field(default=None, max_length=1000)


class CreateConnectAccountRequest(CamelModel):
    country: str = Field(default="US", min_length=2, max_length=2)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class ChargeBreakdownResponse(CamelModel):
    agreed_amount: Decimal
    buyer_fee: Decimal
    total_charged: Decimal


class PaymentIntentResponse(CamelModel):
    client_secret: str | None
    payment_intent_id: str
    escrow_id: uuid.UUID
    breakdown: ChargeBreakdownResponse


class TransactionResponse(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    escrow_id: uuid.UUID | None = None
    type: TransactionType
    amount: Decimal
    status: TransactionStatus
    processor_id: str | None = None
    description: str | None = None
    created_at: datetime


class EscrowResponse(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID | None = None
    service_order_id: uuid.UUID | None = None
    amount: Decimal
    status: EscrowStatus
    processor_payment_id: str | None = None
    created_at: datetime
    funded_at: datetime | None = None
    released_at: datetime | None = None
    refunded_at: datetime | None = None


class EscrowDetailResponse(EscrowResponse):
    transactions: list[TransactionResponse] = Field(default_factory=list)
    allowed_events: list[str] = Field(
        default_factory=list,
        description="Lifecycle events that can fire from the current status",
    )


class OrderPaymentResponse(CamelModel):
    order_id: uuid.UUID
    order_status: ServiceOrderStatus
    package_price: Decimal
    escrow: EscrowDetailResponse | None = None


class TransactionListResponse(CamelModel):
    transactions: list[TransactionResponse]
    pagination: PageInfo


class EarningsResponse(CamelModel):
    lifetime_earnings: Decimal


class ConnectOnboardingResponse(CamelModel):
    account_id: str
    onboarding_url: str


class ConnectStatusResponse(CamelModel):
    connected: bool
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    requires_action: bool = True
    country: str | None = None
    default_currency: str | None = None


class WebhookAck(CamelModel):
    received: bool = True
    duplicate: bool = False
