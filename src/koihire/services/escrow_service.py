"""Escrow Service — core business logic for the payment lifecycle.

This is the application layer that coordinates between:
    - Pricing (buyer fee breakdown)
    - Domain state machines (transition guards for escrow, project and order)
    - Repositories (data access, conditional status updates)
    - The payment processor (intents, transfers, refunds)
    - Notifications

An escrow holds the charge for exactly one project or one service order.
Every public method runs inside the caller's session; the request dependency
commits on success and rolls back on any exception, so a failed processor call
leaves no partial ledger rows behind.

Escrow and transaction rows are written ONLY by this service.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from koihire.domain.enums import (
    DisputeOutcome,
    EscrowStatus,
    NotificationPriority,
    NotificationType,
    ProjectStatus,
    ServiceOrderStatus,
    TransactionType,
)
from koihire.domain.exceptions import (
    DuplicateOperationError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
)
from koihire.domain.pricing import ChargeBreakdown, compute_charge_breakdown, to_minor_units
from koihire.domain.state_machine import (
    EscrowStateMachine,
    ProjectStateMachine,
    ServiceOrderStateMachine,
    can_transition,
    guarded_transition,
)
from koihire.infrastructure.database.orm_models import Escrow
from koihire.infrastructure.database.repositories import (
    EscrowRepository,
    ProjectRepository,
    ServiceOrderRepository,
    TransactionRepository,
)
from koihire.logging_config import get_logger
from koihire.services.notification_service import NotificationService
from koihire.services.payment_service import PaymentService

if TYPE_CHECKING:
    from collections.abc import Collection
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.domain.auth import AuthContext
    from koihire.infrastructure.database.orm_models import (
        Project,
        ServiceOrder,
        Transaction,
        User,
    )
    from koihire.services.payment_service import PaymentIntentResult

logger = get_logger(__name__)

ESCROW_PAYMENT_TYPE = "project_escrow"
SERVICE_ORDER_PAYMENT_TYPE = "service_order"
BUYER_FEE_DESCRIPTION = "Buyer service fee (2.5%)"


@dataclass(frozen=True)
class PaymentIntentOutcome:
    client_secret: str | None
    payment_intent_id: str
    breakdown: ChargeBreakdown
    escrow: Escrow


@dataclass(frozen=True)
class EscrowDetails:
    escrow: Escrow
    transactions: list[Transaction]
    allowed_events: list[str]


@dataclass(frozen=True)
class OrderPayment:
    """A service order with its escrow (None until a payment intent is opened)."""

    order: ServiceOrder
    escrow: Escrow | None
    transactions: list[Transaction]
    allowed_events: list[str]


@dataclass(frozen=True)
class TransactionPage:
    items: list[Transaction]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class EscrowService:
    """Manages the escrow lifecycle for hired projects and purchased packages."""

    def __init__(self, session: AsyncSession, payments: PaymentService | None = None) -> None:
        self._session = session
        self._payments = payments or PaymentService()
        self._escrow_repo = EscrowRepository(session)
        self._project_repo = ProjectRepository(session)
        self._order_repo = ServiceOrderRepository(session)
        self._tx_repo = TransactionRepository(session)
        self._notifications = NotificationService(session)

    # ------------------------------------------------------------------
    # Payment intent
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self,
        project_id: uuid.UUID,
        payer: AuthContext,
    ) -> PaymentIntentOutcome:
        """Start funding: upsert a PENDING escrow and open a processor intent."""
        project = await self._get_project_for_client(project_id, payer)
        self._require_fundable(project)

        escrow = await self._escrow_repo.get_by_project(project.id)
        if escrow is not None and escrow.status != EscrowStatus.PENDING:
            raise InvalidStateTransitionError(escrow.status, EscrowStatus.PENDING.value)

        breakdown = compute_charge_breakdown(project.agreed_amount)
        intent, escrow = await self._open_intent(
            escrow,
            breakdown,
            metadata={
                "projectId": str(project.id),
                "clientId": str(project.client_id),
                "freelancerId": str(project.freelancer_id),
                "type": ESCROW_PAYMENT_TYPE,
                "agreedAmount": str(breakdown.agreed_amount),
                "buyerFee": str(breakdown.buyer_fee),
            },
            description=f"Escrow for project: {project.title}",
            project=project,
        )

        logger.info(
            "escrow.payment_intent_created",
            project_id=str(project.id),
            escrow_id=str(escrow.id),
            intent_id=intent.id,
            total_charged=str(breakdown.total_charged),
        )
        return PaymentIntentOutcome(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            breakdown=breakdown,
            escrow=escrow,
        )

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    async def fund_escrow(
        self,
        project_id: uuid.UUID,
        payment_intent_id: str,
        payer: AuthContext | None = None,
    ) -> Escrow:
        """Record a captured payment and move the escrow PENDING -> FUNDED.

        ``payer`` is None when the processor webhook is the caller. The intent
        must be captured, tagged for this project, and for exactly the
        escrow total; anything else leaves the escrow untouched.
        """
        if payer is not None:
            project = await self._get_project_for_client(project_id, payer)
        else:
            project = await self._get_project_or_raise(project_id)
        self._require_fundable(project)

        escrow = await self._escrow_repo.get_by_project(project.id)
        if escrow is not None:
            guarded_transition(escrow.status, "payment_captured")

        # one captured intent funds exactly one escrow
        claimed = await self._escrow_repo.get_by_processor_payment(payment_intent_id)
        if claimed is not None and claimed.project_id != project.id:
            raise DuplicateOperationError(payment_intent_id)

        breakdown = compute_charge_breakdown(project.agreed_amount)
        await self._verify_captured_intent(
            payment_intent_id,
            breakdown,
            payment_type=ESCROW_PAYMENT_TYPE,
            owner_key="projectId",
            owner_id=project.id,
        )
        escrow = await self._capture(
            escrow,
            payment_intent_id,
            breakdown,
            client_id=project.client_id,
            description=f"Escrow funding for project: {project.title}",
            project=project,
        )

        await self._notifications.send(
            project.freelancer_id,
            NotificationType.ESCROW_FUNDED,
            "Escrow Funded",
            f'The client has funded the escrow for "{project.title}". You can start working.',
            project_id=project.id,
            data={"amount": str(breakdown.agreed_amount)},
        )

        logger.info(
            "escrow.funded",
            project_id=str(project.id),
            escrow_id=str(escrow.id),
            amount=str(breakdown.total_charged),
        )
        return escrow

    async def handle_payment_succeeded(
        self,
        payment_intent_id: str,
        metadata: dict[str, Any],
    ) -> Escrow | None:
        """Webhook path for ``payment_intent.succeeded``.

        Returns None when the intent is not an escrow payment or the escrow was
        already funded through a confirm endpoint.
        """
        payment_type = metadata.get("type")
        if payment_type == ESCROW_PAYMENT_TYPE:
            owner_key = "projectId"
            lookup, fund = self._escrow_repo.get_by_project, self.fund_escrow
        elif payment_type == SERVICE_ORDER_PAYMENT_TYPE:
            owner_key = "orderId"
            lookup, fund = self._escrow_repo.get_by_service_order, self.fund_order_escrow
        else:
            logger.info("escrow.webhook_ignored", intent_id=payment_intent_id)
            return None

        try:
            owner_id = uuid.UUID(str(metadata.get(owner_key)))
        except ValueError as err:
            raise ValidationError(f"Webhook metadata has no valid {owner_key}") from err

        escrow = await lookup(owner_id)
        if escrow is not None and escrow.status != EscrowStatus.PENDING:
            logger.info(
                "escrow.webhook_already_applied",
                escrow_id=str(escrow.id),
                status=escrow.status,
            )
            return None
        return await fund(owner_id, payment_intent_id)

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    async def release_escrow(self, escrow_id: uuid.UUID, approver: AuthContext) -> Escrow:
        """Client approves: pay the freelancer and complete the project."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        project = self._project_of(escrow)
        if project.client_id != approver.user_id:
            raise NotFoundError("Escrow", str(escrow_id))

        guarded_transition(escrow.status, "client_approves")
        return await self._release_project(
            escrow, project, expected=(EscrowStatus.FUNDED,), event_name="client_approves"
        )

    # ------------------------------------------------------------------
    # Refund
    # ------------------------------------------------------------------

    async def refund_escrow(
        self,
        escrow_id: uuid.UUID,
        actor: AuthContext,
        reason: str | None = None,
    ) -> Escrow:
        """Return the captured amount to the client. Client or admin only."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        project = self._project_of(escrow)
        if project.client_id != actor.user_id and not actor.is_admin:
            raise NotFoundError("Escrow", str(escrow_id))

        guarded_transition(escrow.status, "refund_issued")
        cancel_project = can_transition(project.status, "cancelled", ProjectStateMachine)

        await self._refund(
            escrow,
            client_id=project.client_id,
            reason=reason,
            description=f"Refund for project: {project.title}",
        )

        if cancel_project:
            await self._project_repo.update_status(project, ProjectStatus.CANCELLED)
            if project.freelancer_id:
                await self._notifications.send(
                    project.freelancer_id,
                    NotificationType.PROJECT_CANCELLED,
                    "Project Cancelled",
                    f'"{project.title}" was cancelled and the escrow refunded to the client.',
                    project_id=project.id,
                )

        await self._notifications.send(
            project.client_id,
            NotificationType.PAYMENT_REFUNDED,
            "Payment Refunded",
            f'${escrow.amount} for "{project.title}" has been refunded.',
            project_id=project.id,
            data={"amount": str(escrow.amount), "reason": reason},
        )

        logger.info(
            "escrow.refunded",
            escrow_id=str(escrow.id),
            project_id=str(project.id),
            amount=str(escrow.amount),
            by=str(actor.user_id),
        )
        return escrow

    # ------------------------------------------------------------------
    # Disputes
    # ------------------------------------------------------------------

    async def raise_dispute(
        self,
        escrow_id: uuid.UUID,
        actor: AuthContext,
        reason: str,
    ) -> Escrow:
        """Freeze a funded escrow. Either project participant may raise it."""
        if not reason or not reason.strip():
            raise ValidationError("A dispute reason is required", field="reason")

        escrow = await self._get_escrow_or_raise(escrow_id)
        project = self._project_of(escrow)
        if actor.user_id not in (project.client_id, project.freelancer_id):
            raise NotFoundError("Escrow", str(escrow_id))

        guarded_transition(escrow.status, "dispute_raised")
        guarded_transition(project.status, "dispute_raised", ProjectStateMachine)

        await self._conditional_transition(
            escrow,
            expected=(EscrowStatus.FUNDED,),
            new_status=EscrowStatus.DISPUTED,
            event_name="dispute_raised",
        )
        await self._project_repo.update_status(project, ProjectStatus.DISPUTED)

        counterparty = (
            project.freelancer_id if actor.user_id == project.client_id else project.client_id
        )
        await self._notifications.send(
            counterparty,
            NotificationType.PROJECT_UPDATE,
            "Dispute Raised",
            f'A dispute was raised on "{project.title}": {reason.strip()}',
            priority=NotificationPriority.URGENT,
            project_id=project.id,
        )

        logger.info("escrow.dispute_raised", escrow_id=str(escrow.id), by=str(actor.user_id))
        return escrow

    async def resolve_dispute(
        self,
        escrow_id: uuid.UUID,
        admin: AuthContext,
        outcome: DisputeOutcome,
        note: str | None = None,
    ) -> Escrow:
        """Settle a DISPUTED escrow. Admin only.

        RELEASE pays the freelancer and completes the project, REFUND returns
        the charge to the client, RESUME keeps the funds held and puts the
        project back IN_PROGRESS.
        """
        if not admin.is_admin:
            raise ForbiddenError("Only admins can resolve disputes")

        escrow = await self._get_escrow_or_raise(escrow_id)
        project = self._project_of(escrow)

        if outcome == DisputeOutcome.RELEASE:
            guarded_transition(escrow.status, "dispute_resolved_for_freelancer")
            await self._release_project(
                escrow,
                project,
                expected=(EscrowStatus.DISPUTED,),
                event_name="dispute_resolved_for_freelancer",
            )
        elif outcome == DisputeOutcome.REFUND:
            if escrow.status != EscrowStatus.DISPUTED:
                raise InvalidStateTransitionError(escrow.status, "refund_issued")
            await self.refund_escrow(escrow.id, admin, reason=note)
        else:
            guarded_transition(escrow.status, "dispute_withdrawn")
            guarded_transition(project.status, "dispute_resumed", ProjectStateMachine)
            await self._conditional_transition(
                escrow,
                expected=(EscrowStatus.DISPUTED,),
                new_status=EscrowStatus.FUNDED,
                event_name="dispute_withdrawn",
            )
            await self._project_repo.update_status(project, ProjectStatus.IN_PROGRESS)

        message = f'The dispute on "{project.title}" was resolved: {outcome.value.lower()}.'
        if note:
            message = f"{message} {note.strip()}"
        for user_id in (project.client_id, project.freelancer_id):
            if user_id is None:
                continue
            await self._notifications.send(
                user_id,
                NotificationType.PROJECT_UPDATE,
                "Dispute Resolved",
                message,
                priority=NotificationPriority.HIGH,
                project_id=project.id,
            )

        logger.info(
            "escrow.dispute_resolved",
            escrow_id=str(escrow.id),
            outcome=outcome.value,
            status=escrow.status,
            by=str(admin.user_id),
        )
        return escrow

    # ------------------------------------------------------------------
    # Service-order escrow
    # ------------------------------------------------------------------

    async def create_order_payment_intent(
        self,
        order_id: uuid.UUID,
        payer: AuthContext,
    ) -> PaymentIntentOutcome:
        """Open a processor intent for a purchased package."""
        order = await self._get_order_for_client(order_id, payer)
        self._require_order_fundable(order)

        escrow = await self._escrow_repo.get_by_service_order(order.id)
        if escrow is not None and escrow.status != EscrowStatus.PENDING:
            raise InvalidStateTransitionError(escrow.status, EscrowStatus.PENDING.value)

        breakdown = compute_charge_breakdown(order.package_price)
        intent, escrow = await self._open_intent(
            escrow,
            breakdown,
            metadata={
                "orderId": str(order.id),
                "clientId": str(order.client_id),
                "freelancerId": str(order.freelancer_id),
                "type": SERVICE_ORDER_PAYMENT_TYPE,
                "agreedAmount": str(breakdown.agreed_amount),
                "buyerFee": str(breakdown.buyer_fee),
            },
            description=f"Payment for service: {order.service.title}",
            service_order=order,
        )

        logger.info(
            "escrow.payment_intent_created",
            order_id=str(order.id),
            escrow_id=str(escrow.id),
            intent_id=intent.id,
            total_charged=str(breakdown.total_charged),
        )
        return PaymentIntentOutcome(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            breakdown=breakdown,
            escrow=escrow,
        )

    async def fund_order_escrow(
        self,
        order_id: uuid.UUID,
        payment_intent_id: str,
        payer: AuthContext | None = None,
    ) -> Escrow:
        """Hold the package price plus fee. A PENDING order is accepted on payment."""
        if payer is not None:
            order = await self._get_order_for_client(order_id, payer)
        else:
            order = await self._get_order_or_raise(order_id)
        self._require_order_fundable(order)

        escrow = await self._escrow_repo.get_by_service_order(order.id)
        if escrow is not None:
            guarded_transition(escrow.status, "payment_captured")
        accept_order = order.status == ServiceOrderStatus.PENDING
        if accept_order:
            guarded_transition(order.status, "accepted", ServiceOrderStateMachine)

        claimed = await self._escrow_repo.get_by_processor_payment(payment_intent_id)
        if claimed is not None and claimed.service_order_id != order.id:
            raise DuplicateOperationError(payment_intent_id)

        breakdown = compute_charge_breakdown(order.package_price)
        await self._verify_captured_intent(
            payment_intent_id,
            breakdown,
            payment_type=SERVICE_ORDER_PAYMENT_TYPE,
            owner_key="orderId",
            owner_id=order.id,
        )
        escrow = await self._capture(
            escrow,
            payment_intent_id,
            breakdown,
            client_id=order.client_id,
            description=f"Payment for service: {order.service.title}",
            service_order=order,
        )
        if accept_order:
            await self._order_repo.update_status(order, ServiceOrderStatus.ACCEPTED)

        await self._notifications.send(
            order.freelancer_id,
            NotificationType.ESCROW_FUNDED,
            "Order Paid",
            f'Payment for "{order.service.title}" is held in escrow. You can start working.',
            data={"orderId": str(order.id), "amount": str(breakdown.agreed_amount)},
        )

        logger.info(
            "escrow.funded",
            order_id=str(order.id),
            escrow_id=str(escrow.id),
            amount=str(breakdown.total_charged),
        )
        return escrow

    async def release_order_escrow(self, order_id: uuid.UUID, approver: AuthContext) -> Escrow:
        """Client approves a delivered order: pay the freelancer, complete the order."""
        order = await self._get_order_for_client(order_id, approver)
        escrow = await self._get_order_escrow_or_raise(order)

        guarded_transition(escrow.status, "client_approves")
        guarded_transition(order.status, "approved", ServiceOrderStateMachine)
        breakdown = compute_charge_breakdown(order.package_price)
        title = order.service.title

        transfer_id = await self._pay_out(
            escrow,
            breakdown,
            freelancer=order.freelancer,
            freelancer_id=order.freelancer_id,
            client_id=order.client_id,
            description=f"Earnings from service: {title}",
            expected=(EscrowStatus.FUNDED,),
            event_name="client_approves",
            metadata={"orderId": str(order.id), "escrowId": str(escrow.id)},
        )
        await self._order_repo.update_status(order, ServiceOrderStatus.COMPLETED)

        await self._notifications.send(
            order.freelancer_id,
            NotificationType.SERVICE_ORDER_COMPLETED,
            "Order Completed",
            f'"{title}" was approved and ${breakdown.agreed_amount} released to you.',
            priority=NotificationPriority.HIGH,
            data={"orderId": str(order.id), "amount": str(breakdown.agreed_amount)},
        )

        logger.info(
            "escrow.released",
            escrow_id=str(escrow.id),
            order_id=str(order.id),
            payout=str(breakdown.agreed_amount),
            fee=str(breakdown.buyer_fee),
            transfer_id=transfer_id,
        )
        return escrow

    async def refund_order_escrow(
        self,
        order_id: uuid.UUID,
        actor: AuthContext,
        reason: str | None = None,
    ) -> Escrow:
        """Return the order charge to the client and cancel the order.

        Either order participant or an admin may refund; a freelancer
        declining a paid order is the common case.
        """
        order = await self._get_order_or_raise(order_id)
        if actor.user_id not in (order.client_id, order.freelancer_id) and not actor.is_admin:
            raise NotFoundError("ServiceOrder", str(order_id))
        escrow = await self._get_order_escrow_or_raise(order)

        guarded_transition(escrow.status, "refund_issued")
        cancel_order = can_transition(order.status, "payment_refunded", ServiceOrderStateMachine)
        title = order.service.title

        await self._refund(
            escrow,
            client_id=order.client_id,
            reason=reason,
            description=f"Refund for service: {title}",
        )
        if cancel_order:
            await self._order_repo.update_status(order, ServiceOrderStatus.CANCELLED)

        if actor.user_id != order.freelancer_id:
            await self._notifications.send(
                order.freelancer_id,
                NotificationType.SERVICE_ORDER_CANCELLED,
                "Order Cancelled",
                f'The order for "{title}" was cancelled and refunded.',
                data={"orderId": str(order.id), "reason": reason},
            )
        await self._notifications.send(
            order.client_id,
            NotificationType.PAYMENT_REFUNDED,
            "Payment Refunded",
            f'${escrow.amount} for "{title}" has been refunded.',
            data={"orderId": str(order.id), "amount": str(escrow.amount), "reason": reason},
        )

        logger.info(
            "escrow.refunded",
            escrow_id=str(escrow.id),
            order_id=str(order.id),
            amount=str(escrow.amount),
            by=str(actor.user_id),
        )
        return escrow

    async def get_order_payment(self, order_id: uuid.UUID, viewer: AuthContext) -> OrderPayment:
        order = await self._get_order_or_raise(order_id)
        if viewer.user_id not in (order.client_id, order.freelancer_id) and not viewer.is_admin:
            raise NotFoundError("ServiceOrder", str(order_id))

        escrow = await self._escrow_repo.get_by_service_order(order.id)
        if escrow is None:
            return OrderPayment(order=order, escrow=None, transactions=[], allowed_events=[])
        return OrderPayment(
            order=order,
            escrow=escrow,
            transactions=await self._tx_repo.list_for_escrow(escrow.id),
            allowed_events=EscrowStateMachine(current_status=escrow.status).get_allowed_events(),
        )

    # ------------------------------------------------------------------
    # Project-addressed entry points (the REST surface keys on project id)
    # ------------------------------------------------------------------

    async def escrow_id_for_project(self, project_id: uuid.UUID) -> uuid.UUID:
        escrow = await self._escrow_repo.get_by_project(project_id)
        if escrow is None:
            raise NotFoundError("Escrow", str(project_id))
        return escrow.id

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_escrow_for_project(
        self,
        project_id: uuid.UUID,
        viewer: AuthContext,
    ) -> EscrowDetails | None:
        """Escrow with its ledger rows. Visible to the client and hired freelancer."""
        project = await self._get_project_or_raise(project_id)
        if viewer.user_id not in (project.client_id, project.freelancer_id) and not viewer.is_admin:
            raise NotFoundError("Project", str(project_id))

        escrow = await self._escrow_repo.get_by_project(project.id)
        if escrow is None:
            return None
        return EscrowDetails(
            escrow=escrow,
            transactions=await self._tx_repo.list_for_escrow(escrow.id),
            allowed_events=EscrowStateMachine(current_status=escrow.status).get_allowed_events(),
        )

    async def list_transactions(
        self,
        viewer: AuthContext,
        tx_type: TransactionType | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> TransactionPage:
        if page < 1 or not 1 <= limit <= 100:
            raise ValidationError("page must be >= 1 and limit between 1 and 100")
        items, total = await self._tx_repo.list_for_user(
            viewer.user_id, tx_type=tx_type, page=page, limit=limit
        )
        return TransactionPage(items=items, total=total, page=page, limit=limit)

    async def lifetime_earnings(self, viewer: AuthContext) -> Decimal:
        """Sum of the viewer's COMPLETED payouts."""
        return await self._tx_repo.sum_completed(viewer.user_id, TransactionType.WITHDRAWAL)

    # ------------------------------------------------------------------
    # Shared money movements
    # ------------------------------------------------------------------

    async def _open_intent(
        self,
        escrow: Escrow | None,
        breakdown: ChargeBreakdown,
        metadata: dict[str, str],
        description: str,
        **owner: Project | ServiceOrder,
    ) -> tuple[PaymentIntentResult, Escrow]:
        intent = await self._payments.create_payment_intent(
            breakdown.total_charged,
            metadata=metadata,
            description=description,
        )
        if escrow is None:
            escrow = await self._escrow_repo.create(
                Escrow(
                    amount=breakdown.total_charged,
                    status=EscrowStatus.PENDING.value,
                    processor_payment_id=intent.id,
                    **owner,
                )
            )
        else:
            escrow.amount = breakdown.total_charged
            escrow.processor_payment_id = intent.id
            await self._session.flush()
        return intent, escrow

    async def _verify_captured_intent(
        self,
        payment_intent_id: str,
        breakdown: ChargeBreakdown,
        *,
        payment_type: str,
        owner_key: str,
        owner_id: uuid.UUID,
    ) -> None:
        """The processor must hold exactly this charge, issued for this item."""
        intent = await self._payments.retrieve_payment_intent(payment_intent_id)
        if not intent.captured:
            raise UpstreamFailureError(
                f"Payment has not been captured (status: {intent.status})", upstream="stripe"
            )

        if (
            intent.metadata.get("type") != payment_type
            or intent.metadata.get(owner_key) != str(owner_id)
        ):
            logger.warning(
                "escrow.intent_mismatch",
                intent_id=payment_intent_id,
                expected=str(owner_id),
                found=intent.metadata.get(owner_key),
                payment_type=intent.metadata.get("type"),
            )
            raise ValidationError(
                "Payment intent was not issued for this payment", field="paymentIntentId"
            )

        expected_cents = to_minor_units(breakdown.total_charged)
        if intent.amount_cents != expected_cents:
            logger.warning(
                "escrow.amount_mismatch",
                intent_id=payment_intent_id,
                expected_cents=expected_cents,
                captured_cents=intent.amount_cents,
            )
            raise ValidationError(
                f"Captured amount does not match the escrow total of {breakdown.total_charged}",
                field="paymentIntentId",
            )

    async def _capture(
        self,
        escrow: Escrow | None,
        payment_intent_id: str,
        breakdown: ChargeBreakdown,
        *,
        client_id: uuid.UUID,
        description: str,
        **owner: Project | ServiceOrder,
    ) -> Escrow:
        """PENDING -> FUNDED plus the client's DEPOSIT row."""
        if escrow is None:
            escrow = await self._escrow_repo.create(
                Escrow(
                    amount=breakdown.total_charged,
                    status=EscrowStatus.PENDING.value,
                    processor_payment_id=payment_intent_id,
                    **owner,
                )
            )

        await self._conditional_transition(
            escrow,
            expected=(EscrowStatus.PENDING,),
            new_status=EscrowStatus.FUNDED,
            event_name="payment_captured",
            amount=breakdown.total_charged,
            processor_payment_id=payment_intent_id,
            funded_at=datetime.now(UTC),
        )
        await self._tx_repo.record(
            client_id,
            TransactionType.DEPOSIT,
            breakdown.total_charged,
            escrow_id=escrow.id,
            processor_id=payment_intent_id,
            description=description,
        )
        return escrow

    async def _release_project(
        self,
        escrow: Escrow,
        project: Project,
        *,
        expected: Collection[EscrowStatus],
        event_name: str,
    ) -> Escrow:
        complete_project = project.status != ProjectStatus.COMPLETED
        if complete_project:
            guarded_transition(project.status, "work_approved", ProjectStateMachine)
        breakdown = self._breakdown_for(project)

        transfer_id = await self._pay_out(
            escrow,
            breakdown,
            freelancer=project.freelancer,
            freelancer_id=project.freelancer_id,
            client_id=project.client_id,
            description=f"Payment for project: {project.title}",
            expected=expected,
            event_name=event_name,
            metadata={"projectId": str(project.id), "escrowId": str(escrow.id)},
        )
        if complete_project:
            await self._project_repo.update_status(project, ProjectStatus.COMPLETED)

        await self._notifications.send(
            project.freelancer_id,
            NotificationType.PAYMENT_RELEASED,
            "Payment Released",
            f'${breakdown.agreed_amount} has been released to you for "{project.title}".',
            priority=NotificationPriority.HIGH,
            project_id=project.id,
            data={"amount": str(breakdown.agreed_amount)},
        )

        logger.info(
            "escrow.released",
            escrow_id=str(escrow.id),
            project_id=str(project.id),
            event=event_name,
            payout=str(breakdown.agreed_amount),
            fee=str(breakdown.buyer_fee),
            transfer_id=transfer_id,
        )
        return escrow

    async def _pay_out(
        self,
        escrow: Escrow,
        breakdown: ChargeBreakdown,
        *,
        freelancer: User | None,
        freelancer_id: uuid.UUID,
        client_id: uuid.UUID,
        description: str,
        expected: Collection[EscrowStatus],
        event_name: str,
        metadata: dict[str, str],
    ) -> str | None:
        """-> RELEASED, transfer the agreed amount, record WITHDRAWAL and FEE."""
        await self._conditional_transition(
            escrow,
            expected=expected,
            new_status=EscrowStatus.RELEASED,
            event_name=event_name,
            released_at=datetime.now(UTC),
        )

        transfer_id = None
        account_id = freelancer.stripe_connect_account_id if freelancer else None
        if account_id and freelancer.stripe_payouts_enabled:
            transfer_id = await self._payments.transfer_to_freelancer(
                account_id,
                breakdown.agreed_amount,
                description=description,
                metadata=metadata,
            )
        else:
            logger.warning(
                "escrow.payout_deferred",
                escrow_id=str(escrow.id),
                freelancer_id=str(freelancer_id),
                reason="no connect account with payouts enabled",
            )

        await self._tx_repo.record(
            freelancer_id,
            TransactionType.WITHDRAWAL,
            breakdown.agreed_amount,
            escrow_id=escrow.id,
            processor_id=transfer_id,
            description=description,
        )
        await self._tx_repo.record(
            client_id,
            TransactionType.FEE,
            breakdown.buyer_fee,
            escrow_id=escrow.id,
            description=BUYER_FEE_DESCRIPTION,
        )
        return transfer_id

    async def _refund(
        self,
        escrow: Escrow,
        *,
        client_id: uuid.UUID,
        reason: str | None,
        description: str,
    ) -> str | None:
        await self._conditional_transition(
            escrow,
            expected=(EscrowStatus.FUNDED, EscrowStatus.DISPUTED),
            new_status=EscrowStatus.REFUNDED,
            event_name="refund_issued",
            refunded_at=datetime.now(UTC),
        )

        refund_id = None
        if escrow.processor_payment_id:
            refund_id = await self._payments.refund_payment(escrow.processor_payment_id, reason)

        await self._tx_repo.record(
            client_id,
            TransactionType.REFUND,
            escrow.amount,
            escrow_id=escrow.id,
            processor_id=refund_id,
            description=description,
        )
        return refund_id

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_project_or_raise(self, project_id: uuid.UUID) -> Project:
        project = await self._project_repo.get_by_id(project_id)
        if project is None:
            raise NotFoundError("Project", str(project_id))
        return project

    async def _get_project_for_client(
        self, project_id: uuid.UUID, payer: AuthContext
    ) -> Project:
        project = await self._get_project_or_raise(project_id)
        if project.client_id != payer.user_id:
            raise NotFoundError("Project", str(project_id))
        return project

    async def _get_order_or_raise(self, order_id: uuid.UUID) -> ServiceOrder:
        order = await self._order_repo.get_by_id(order_id)
        if order is None:
            raise NotFoundError("ServiceOrder", str(order_id))
        return order

    async def _get_order_for_client(
        self, order_id: uuid.UUID, payer: AuthContext
    ) -> ServiceOrder:
        order = await self._get_order_or_raise(order_id)
        if order.client_id != payer.user_id:
            raise NotFoundError("ServiceOrder", str(order_id))
        return order

    async def _get_order_escrow_or_raise(self, order: ServiceOrder) -> Escrow:
        escrow = await self._escrow_repo.get_by_service_order(order.id)
        if escrow is None:
            raise NotFoundError("Escrow", str(order.id))
        return escrow

    async def _get_escrow_or_raise(self, escrow_id: uuid.UUID) -> Escrow:
        escrow = await self._escrow_repo.get_by_id(escrow_id)
        if escrow is None:
            raise NotFoundError("Escrow", str(escrow_id))
        return escrow

    @staticmethod
    def _project_of(escrow: Escrow) -> Project:
        # service-order escrows are settled through the order methods
        if escrow.project is None:
            raise NotFoundError("Escrow", str(escrow.id))
        return escrow.project

    @staticmethod
    def _require_fundable(project: Project) -> None:
        if (
            project.status != ProjectStatus.IN_PROGRESS
            or project.freelancer_id is None
            or project.agreed_amount is None
        ):
            raise InvalidStateTransitionError(project.status, EscrowStatus.FUNDED.value)

    @staticmethod
    def _require_order_fundable(order: ServiceOrder) -> None:
        if order.status not in (ServiceOrderStatus.PENDING, ServiceOrderStatus.ACCEPTED):
            raise InvalidStateTransitionError(order.status, EscrowStatus.FUNDED.value)

    @staticmethod
    def _breakdown_for(project: Project) -> ChargeBreakdown:
        if project.agreed_amount is None:
            raise ValidationError("Project has no agreed amount", field="agreedAmount")
        return compute_charge_breakdown(project.agreed_amount)

    async def _conditional_transition(
        self,
        escrow: Escrow,
        expected: Collection[EscrowStatus],
        new_status: EscrowStatus,
        event_name: str,
        **values: Any,
    ) -> None:
        """Apply the status change only if no other writer got there first."""
        applied = await self._escrow_repo.transition_status(
            escrow, expected, new_status, **values
        )
        if not applied:
            await self._session.refresh(escrow)
            logger.warning(
                "escrow.concurrent_update",
                escrow_id=str(escrow.id),
                status=escrow.status,
                attempted=event_name,
            )
            raise InvalidStateTransitionError(escrow.status, event_name)
