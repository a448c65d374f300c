"""Service Order Service — buying a freelancer's package and working it to completion.

Order status moves through ServiceOrderStateMachine. Once the order escrow
is FUNDED, approval and cancellation move money, so they are handed to
EscrowService; unfunded orders change status here directly.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from koihire.domain.enums import (
    EscrowStatus,
    NotificationPriority,
    NotificationType,
    ServiceOrderStatus,
    UserRole,
)
from koihire.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from koihire.domain.state_machine import ServiceOrderStateMachine, guarded_transition
from koihire.infrastructure.database.orm_models import ServiceOrder
from koihire.infrastructure.database.repositories import (
    EscrowRepository,
    ServiceOrderRepository,
)
from koihire.logging_config import get_logger
from koihire.services.escrow_service import EscrowService
from koihire.services.notification_service import NotificationService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.domain.auth import AuthContext
    from koihire.services.payment_service import PaymentService

logger = get_logger(__name__)


class ServiceOrderService:
    def __init__(self, session: AsyncSession, payments: PaymentService | None = None) -> None:
        self._session = session
        self._orders = ServiceOrderRepository(session)
        self._escrows = EscrowRepository(session)
        self._escrow_service = EscrowService(session, payments)
        self._notifications = NotificationService(session)

    async def place_order(self, client: AuthContext, package_id: uuid.UUID) -> ServiceOrder:
        """Buy a package. The price is fixed at this moment."""
        if client.role == UserRole.FREELANCER:
            raise ForbiddenError("Only clients can order services")

        package = await self._orders.get_package(package_id)
        if package is None:
            raise NotFoundError("ServicePackage", str(package_id))
        service = package.service
        if service.user_id == client.user_id:
            raise ValidationError("You cannot order your own service", field="packageId")

        order = await self._orders.create(
            ServiceOrder(
                service_id=service.id,
                package_id=package.id,
                client_id=client.user_id,
                freelancer_id=service.user_id,
                status=ServiceOrderStatus.PENDING.value,
                package_price=package.price,
                delivery_date=datetime.now(UTC) + timedelta(days=package.delivery_days),
                service=service,
                package=package,
            )
        )
        await self._session.refresh(order)

        await self._notifications.send(
            service.user_id,
            NotificationType.SERVICE_ORDER_RECEIVED,
            "New Order",
            f'You received a {package.tier.lower()} order for "{service.title}".',
            priority=NotificationPriority.HIGH,
            data={"orderId": str(order.id), "amount": str(package.price)},
        )
        logger.info(
            "service_order.placed",
            order_id=str(order.id),
            package_id=str(package.id),
            price=str(package.price),
        )
        return order

    async def get_order(self, order_id: uuid.UUID, viewer: AuthContext) -> ServiceOrder:
        order = await self._orders.get_by_id(order_id)
        if order is None or (
            viewer.user_id not in (order.client_id, order.freelancer_id) and not viewer.is_admin
        ):
            raise NotFoundError("ServiceOrder", str(order_id))
        return order

    # ------------------------------------------------------------------
    # Freelancer actions
    # ------------------------------------------------------------------

    async def accept(self, order_id: uuid.UUID, freelancer: AuthContext) -> ServiceOrder:
        order = await self._freelancer_order(order_id, freelancer)
        guarded_transition(order.status, "accepted", ServiceOrderStateMachine)
        await self._orders.update_status(order, ServiceOrderStatus.ACCEPTED)
        await self._notify(
            order.client_id,
            order,
            NotificationType.SERVICE_ORDER_ACCEPTED,
            "Order Accepted",
            f'Your order for "{order.service.title}" was accepted.',
        )
        return order

    async def start(self, order_id: uuid.UUID, freelancer: AuthContext) -> ServiceOrder:
        order = await self._freelancer_order(order_id, freelancer)
        guarded_transition(order.status, "started", ServiceOrderStateMachine)
        await self._orders.update_status(order, ServiceOrderStatus.IN_PROGRESS)
        logger.info("service_order.status_changed", order_id=str(order.id), status=order.status)
        return order

    async def deliver(self, order_id: uuid.UUID, freelancer: AuthContext) -> ServiceOrder:
        order = await self._freelancer_order(order_id, freelancer)
        guarded_transition(order.status, "delivered", ServiceOrderStateMachine)
        await self._orders.update_status(
            order, ServiceOrderStatus.DELIVERED, delivered_at=datetime.now(UTC)
        )
        await self._notify(
            order.client_id,
            order,
            NotificationType.SERVICE_ORDER_DELIVERED,
            "Order Delivered",
            f'"{order.service.title}" has been delivered. Review and approve it.',
            priority=NotificationPriority.HIGH,
        )
        return order

    # ------------------------------------------------------------------
    # Client actions
    # ------------------------------------------------------------------

    async def request_revision(
        self, order_id: uuid.UUID, client: AuthContext, note: str
    ) -> ServiceOrder:
        """Send a delivery back. Limited to the revisions the package includes."""
        if not note or not note.strip():
            raise ValidationError("Describe the changes you need", field="note")

        order = await self._client_order(order_id, client)
        guarded_transition(order.status, "revision_requested", ServiceOrderStateMachine)
        if order.revisions_used >= order.package.revisions:
            raise ValidationError(
                f"This package includes {order.package.revisions} revision(s); all are used",
                field="note",
            )

        await self._orders.update_status(
            order,
            ServiceOrderStatus.REVISION_REQUESTED,
            revisions_used=order.revisions_used + 1,
        )
        await self._notify(
            order.freelancer_id,
            order,
            NotificationType.SERVICE_ORDER_REVISION_REQUESTED,
            "Revision Requested",
            f'Changes were requested on "{order.service.title}": {note.strip()}',
            priority=NotificationPriority.HIGH,
        )
        return order

    async def approve(self, order_id: uuid.UUID, client: AuthContext) -> ServiceOrder:
        """Accept the delivery. A funded order pays the freelancer in the same step."""
        order = await self._client_order(order_id, client)
        escrow = await self._escrows.get_by_service_order(order.id)
        if escrow is not None and escrow.status == EscrowStatus.FUNDED:
            await self._escrow_service.release_order_escrow(order.id, client)
            return order

        guarded_transition(order.status, "approved", ServiceOrderStateMachine)
        await self._orders.update_status(order, ServiceOrderStatus.COMPLETED)
        await self._notify(
            order.freelancer_id,
            order,
            NotificationType.SERVICE_ORDER_COMPLETED,
            "Order Completed",
            f'"{order.service.title}" was approved by the client.',
        )
        return order

    async def cancel(
        self, order_id: uuid.UUID, actor: AuthContext, reason: str | None = None
    ) -> ServiceOrder:
        """Cancel before work starts. A funded order is refunded to the client."""
        order = await self.get_order(order_id, actor)
        guarded_transition(order.status, "cancelled", ServiceOrderStateMachine)

        escrow = await self._escrows.get_by_service_order(order.id)
        if escrow is not None and escrow.status == EscrowStatus.FUNDED:
            await self._escrow_service.refund_order_escrow(order.id, actor, reason)
            return order

        await self._orders.update_status(order, ServiceOrderStatus.CANCELLED)
        counterparty = order.freelancer_id if actor.user_id == order.client_id else order.client_id
        await self._notify(
            counterparty,
            order,
            NotificationType.SERVICE_ORDER_CANCELLED,
            "Order Cancelled",
            f'The order for "{order.service.title}" was cancelled.',
        )
        return order

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _freelancer_order(self, order_id: uuid.UUID, freelancer: AuthContext) -> ServiceOrder:
        order = await self._orders.get_for_freelancer(order_id, freelancer.user_id)
        if order is None:
            raise NotFoundError("ServiceOrder", str(order_id))
        return order

    async def _client_order(self, order_id: uuid.UUID, client: AuthContext) -> ServiceOrder:
        order = await self._orders.get_by_id(order_id)
        if order is None or order.client_id != client.user_id:
            raise NotFoundError("ServiceOrder", str(order_id))
        return order

    async def _notify(
        self,
        user_id: uuid.UUID,
        order: ServiceOrder,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
    ) -> None:
        await self._notifications.send(
            user_id,
            notification_type,
            title,
            message,
            priority=priority,
            data={"orderId": str(order.id)},
        )
        logger.info(
            "service_order.status_changed", order_id=str(order.id), status=order.status
        )
