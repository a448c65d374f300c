"""Payments REST API routes.

Routes:
    POST /api/payments/connect/create-account            — Connect account + onboarding link
    GET  /api/payments/connect/status                    — Connect account readiness
    POST /api/payments/project/create-payment-intent     — Open an intent for the escrow amount
    POST /api/payments/project/{project_id}/confirm      — Captured intent: PENDING -> FUNDED
    GET  /api/payments/escrow/{project_id}               — Escrow + ledger rows for a project
    POST /api/payments/escrow/{project_id}/release       — Client approves (FUNDED -> RELEASED)
    POST /api/payments/escrow/{project_id}/refund        — Refund (FUNDED|DISPUTED -> REFUNDED)
    POST /api/payments/escrow/{project_id}/dispute       — Dispute (FUNDED -> DISPUTED)
    POST /api/payments/escrow/{project_id}/resolve       — Admin settles a dispute
    POST /api/payments/service-order/create-payment-intent — Open an intent for a service order
    POST /api/payments/service-order/{order_id}/confirm  — Record a captured order payment
    GET  /api/payments/service-order/{order_id}          — Order escrow + ledger rows
    POST /api/payments/service-order/{order_id}/release  — Client approves a delivered order
    POST /api/payments/service-order/{order_id}/refund   — Refund and cancel the order
    GET  /api/payments/transactions                      — Caller's ledger, paginated
    GET  /api/payments/earnings                          — Caller's lifetime earnings
    POST /api/payments/webhook                           — Processor webhook (signature verified)
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import stripe
from fastapi import APIRouter, Depends, Header, Query, Request
from redis.exceptions import RedisError

from koihire.api.deps import (
    get_current_user,
    get_db_session,
    get_payment_service,
    get_session_user,
)
from koihire.domain.auth import AuthContext
from koihire.domain.enums import TransactionType
from koihire.domain.exceptions import ValidationError
from koihire.infrastructure.redis_client import event_seen, remember_event
from koihire.logging_config import get_logger
from koihire.schemas.common import ApiResponse, PageInfo
from koihire.schemas.payments import (
    ChargeBreakdownResponse,
    ConfirmPaymentRequest,
    ConnectOnboardingResponse,
    ConnectStatusResponse,
    CreateConnectAccountRequest,
    CreateOrderPaymentIntentRequest,
    CreatePaymentIntentRequest,
    DisputeRequest,
    EarningsResponse,
    EscrowDetailResponse,
    EscrowResponse,
    OrderPaymentResponse,
    PaymentIntentResponse,
    RefundRequest,
    ResolveDisputeRequest,
    TransactionListResponse,
    TransactionResponse,
    WebhookAck,
)
from koihire.services.connect_service import ConnectService
from koihire.services.escrow_service import EscrowService
from koihire.services.payment_service import PaymentService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.infrastructure.database.orm_models import Escrow, Transaction
    from koihire.services.escrow_service import PaymentIntentOutcome

router = APIRouter(prefix="/api/payments", tags=["Payments"])
logger = get_logger(__name__)


def _intent_response(outcome: PaymentIntentOutcome) -> PaymentIntentResponse:
    breakdown = outcome.breakdown
    return PaymentIntentResponse(
        client_secret=outcome.client_secret,
        payment_intent_id=outcome.payment_intent_id,
        escrow_id=outcome.escrow.id,
        breakdown=ChargeBreakdownResponse(
            agreed_amount=breakdown.agreed_amount,
            buyer_fee=breakdown.buyer_fee,
            total_charged=breakdown.total_charged,
        ),
    )


def _escrow_detail(
    escrow: Escrow, transactions: list[Transaction], allowed_events: list[str]
) -> EscrowDetailResponse:
    return EscrowDetailResponse(
        **EscrowResponse.model_validate(escrow).model_dump(),
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        allowed_events=allowed_events,
    )


# ---------------------------------------------------------------------------
# Connect onboarding
# ---------------------------------------------------------------------------


@router.post(
    "/connect/create-account",
    response_model=ApiResponse[ConnectOnboardingResponse],
    summary="Create a connect account and return an onboarding link",
)
async def create_connect_account(
    body: CreateConnectAccountRequest | None = None,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[ConnectOnboardingResponse]:
    country = body.country if body else "US"
    onboarding = await ConnectService(session, payments).create_connect_account(user, country)
    return ApiResponse(
        data=ConnectOnboardingResponse(
            account_id=onboarding.account_id,
            onboarding_url=onboarding.onboarding_url,
        )
    )


@router.get(
    "/connect/status",
    response_model=ApiResponse[ConnectStatusResponse],
    summary="Connect account status",
)
async def connect_status(
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[ConnectStatusResponse]:
    status = await ConnectService(session, payments).connect_status(user)
    if status.account is None:
        return ApiResponse(data=ConnectStatusResponse(connected=False))
    account = status.account
    return ApiResponse(
        data=ConnectStatusResponse(
            connected=True,
            charges_enabled=account.charges_enabled,
            payouts_enabled=account.payouts_enabled,
            details_submitted=account.details_submitted,
            requires_action=account.requires_action,
            country=account.country,
            default_currency=account.default_currency,
        )
    )


# ---------------------------------------------------------------------------
# Funding
# ---------------------------------------------------------------------------


@router.post(
    "/project/create-payment-intent",
    response_model=ApiResponse[PaymentIntentResponse],
    summary="Create a payment intent for a project's escrow",
)
async def create_payment_intent(
    body: CreatePaymentIntentRequest,
    user: AuthContext = Depends(get_session_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[PaymentIntentResponse]:
    """Charge = agreed amount + 2.5% buyer fee. The escrow is left PENDING."""
    outcome = await EscrowService(session, payments).create_payment_intent(body.project_id, user)
    return ApiResponse(data=_intent_response(outcome))


@router.post(
    "/project/{project_id}/confirm",
    response_model=ApiResponse[EscrowResponse],
    summary="Confirm a captured payment and fund the escrow",
)
async def confirm_payment(
    project_id: uuid.UUID,
    body: ConfirmPaymentRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[EscrowResponse]:
    escrow = await EscrowService(session, payments).fund_escrow(
        project_id, body.payment_intent_id, payer=user
    )
    return ApiResponse(data=EscrowResponse.model_validate(escrow))


# ---------------------------------------------------------------------------
# Escrow lifecycle
# ---------------------------------------------------------------------------


@router.get(
    "/escrow/{project_id}",
    response_model=ApiResponse[EscrowDetailResponse],
    summary="Get a project's escrow",
)
async def get_escrow(
    project_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[EscrowDetailResponse]:
    details = await EscrowService(session).get_escrow_for_project(project_id, user)
    if details is None:
        return ApiResponse(data=None)
    return ApiResponse(
        data=_escrow_detail(details.escrow, details.transactions, details.allowed_events)
    )


@router.post(
    "/escrow/{project_id}/release",
    response_model=ApiResponse[EscrowResponse],
    summary="Release escrow to the freelancer",
)
async def release_escrow(
    project_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[EscrowResponse]:
    svc = EscrowService(session, payments)
    escrow = await svc.release_escrow(await svc.escrow_id_for_project(project_id), user)
    return ApiResponse(
        data=EscrowResponse.model_validate(escrow),
        message="Payment released to freelancer",
    )


@router.post(
    "/escrow/{project_id}/refund",
    response_model=ApiResponse[EscrowResponse],
    summary="Refund escrow to the client",
)
async def refund_escrow(
    project_id: uuid.UUID,
    body: RefundRequest | None = None,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[EscrowResponse]:
    svc = EscrowService(session, payments)
    escrow = await svc.refund_escrow(
        await svc.escrow_id_for_project(project_id),
        user,
        reason=body.reason if body else None,
    )
    return ApiResponse(data=EscrowResponse.model_validate(escrow), message="Escrow refunded")


@router.post(
    "/escrow/{project_id}/dispute",
    response_model=ApiResponse[EscrowResponse],
    summary="Raise a dispute on a funded escrow",
)
async def dispute_escrow(
    project_id: uuid.UUID,
    body: DisputeRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[EscrowResponse]:
    svc = EscrowService(session)
    escrow = await svc.raise_dispute(
        await svc.escrow_id_for_project(project_id), user, body.reason
    )
    return ApiResponse(data=EscrowResponse.model_validate(escrow))


@router.post(
    "/escrow/{project_id}/resolve",
    response_model=ApiResponse[EscrowResponse],
    summary="Settle a disputed escrow (admin)",
)
async def resolve_dispute(
    project_id: uuid.UUID,
    body: ResolveDisputeRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[EscrowResponse]:
    svc = EscrowService(session, payments)
    escrow = await svc.resolve_dispute(
        await svc.escrow_id_for_project(project_id), user, body.outcome, note=body.note
    )
    return ApiResponse(data=EscrowResponse.model_validate(escrow), message="Dispute resolved")


# ---------------------------------------------------------------------------
# Service-order escrow
# ---------------------------------------------------------------------------


@router.post(
    "/service-order/create-payment-intent",
    response_model=ApiResponse[PaymentIntentResponse],
    summary="Create a payment intent for a service order",
)
async def create_order_payment_intent(
    body: CreateOrderPaymentIntentRequest,
    user: AuthContext = Depends(get_session_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[PaymentIntentResponse]:
    outcome = await EscrowService(session, payments).create_order_payment_intent(
        body.order_id, user
    )
    return ApiResponse(data=_intent_response(outcome))


@router.post(
    "/service-order/{order_id}/confirm",
    response_model=ApiResponse[EscrowResponse],
    summary="Confirm a captured order payment",
)
async def confirm_order_payment(
    order_id: uuid.UUID,
    body: ConfirmPaymentRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[EscrowResponse]:
    escrow = await EscrowService(session, payments).fund_order_escrow(
        order_id, body.payment_intent_id, payer=user
    )
    return ApiResponse(data=EscrowResponse.model_validate(escrow))


@router.get(
    "/service-order/{order_id}",
    response_model=ApiResponse[OrderPaymentResponse],
    summary="Get a service order's payment state",
)
async def get_order_payment(
    order_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderPaymentResponse]:
    payment = await EscrowService(session).get_order_payment(order_id, user)
    escrow = None
    if payment.escrow is not None:
        escrow = _escrow_detail(payment.escrow, payment.transactions, payment.allowed_events)
    return ApiResponse(
        data=OrderPaymentResponse(
            order_id=payment.order.id,
            order_status=payment.order.status,
            package_price=payment.order.package_price,
            escrow=escrow,
        )
    )


@router.post(
    "/service-order/{order_id}/release",
    response_model=ApiResponse[EscrowResponse],
    summary="Release an order's escrow to the freelancer",
)
async def release_order_escrow(
    order_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[EscrowResponse]:
    escrow = await EscrowService(session, payments).release_order_escrow(order_id, user)
    return ApiResponse(
        data=EscrowResponse.model_validate(escrow),
        message="Payment released to freelancer",
    )


@router.post(
    "/service-order/{order_id}/refund",
    response_model=ApiResponse[EscrowResponse],
    summary="Refund an order's escrow and cancel the order",
)
async def refund_order_escrow(
    order_id: uuid.UUID,
    body: RefundRequest | None = None,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[EscrowResponse]:
    escrow = await EscrowService(session, payments).refund_order_escrow(
        order_id, user, reason=body.reason if body else None
    )
    return ApiResponse(data=EscrowResponse.model_validate(escrow), message="Escrow refunded")


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@router.get(
    "/transactions",
    response_model=ApiResponse[TransactionListResponse],
    summary="List the caller's transactions",
)
async def list_transactions(
    tx_type: TransactionType | None = Query(default=None, alias="type"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[TransactionListResponse]:
    result = await EscrowService(session).list_transactions(
        user, tx_type=tx_type, page=page, limit=limit
    )
    return ApiResponse(
        data=TransactionListResponse(
            transactions=[TransactionResponse.model_validate(t) for t in result.items],
            pagination=PageInfo(
                page=result.page,
                limit=result.limit,
                total=result.total,
                pages=result.pages,
            ),
        )
    )


@router.get(
    "/earnings",
    response_model=ApiResponse[EarningsResponse],
    summary="Lifetime earnings (sum of completed payouts)",
)
async def get_earnings(
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[EarningsResponse]:
    total = await EscrowService(session).lifetime_earnings(user)
    return ApiResponse(data=EarningsResponse(lifetime_earnings=total))


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


async def _already_processed(event_id: str) -> bool:
    try:
        return await event_seen(event_id)
    except (RuntimeError, RedisError) as exc:
        # escrow funding is state-guarded, so a replay without redis is still safe
        logger.warning("webhook.idempotency_unavailable", event_id=event_id, error=str(exc))
        return False


async def _mark_processed(event_id: str, event_type: str) -> None:
    try:
        await remember_event(event_id, event_type)
    except (RuntimeError, RedisError) as exc:
        logger.warning("webhook.idempotency_unavailable", event_id=event_id, error=str(exc))


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Payment processor webhook",
)
async def payment_webhook(
    request: Request,
    stripe_signature: str = Header(default="", alias="Stripe-Signature"),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    payload = await request.body()
    try:
        event = payments.construct_webhook_event(payload, stripe_signature)
    except ValueError as err:
        raise ValidationError("Invalid webhook payload") from err
    except stripe.SignatureVerificationError as err:
        logger.warning("webhook.bad_signature")
        raise ValidationError("Invalid webhook signature") from err

    event_id = event["id"]
    if await _already_processed(event_id):
        logger.info("webhook.duplicate", event_id=event_id, type=event["type"])
        return WebhookAck(duplicate=True)

    if event["type"] == "payment_intent.succeeded":
        intent = event["data"]["object"]
        await EscrowService(session, payments).handle_payment_succeeded(
            intent["id"], dict(intent.get("metadata") or {})
        )
    elif event["type"] == "payment_intent.payment_failed":
        intent = event["data"]["object"]
        logger.warning("webhook.payment_failed", intent_id=intent["id"])
    else:
        logger.info("webhook.unhandled_event", type=event["type"])

    # persist the escrow change before recording the event id
    await session.commit()
    await _mark_processed(event_id, event["type"])
    return WebhookAck()
