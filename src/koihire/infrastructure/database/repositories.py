"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, func, select, update

from koihire.domain.enums import TransactionStatus, TransactionType
from koihire.domain.pricing import round_currency
from koihire.domain.work_items import (
    ACTIVE_PROJECT_STATUSES,
    ACTIVE_SERVICE_ORDER_STATUSES,
    ProjectRef,
)
from koihire.infrastructure.database.orm_models import (
    Escrow,
    Notification,
    Project,
    ServiceOrder,
    ServicePackage,
    Transaction,
    User,
    WorkItemNote,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Collection

    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.domain.enums import EscrowStatus, ProjectStatus, ServiceOrderStatus
    from koihire.domain.work_items import WorkItemRef


class UserRepository:
    """Data access for users and their connect-account state."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, user: User) -> User:
        self._session.add(user)
        await self._session.flush()
        return user

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        result = await self._session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def set_connect_account(self, user: User, account_id: str) -> User:
        user.stripe_connect_account_id = account_id
        await self._session.flush()
        return user

    async def update_connect_flags(
        self,
        user: User,
        *,
        onboarding_complete: bool,
        payouts_enabled: bool,
    ) -> User:
        user.stripe_onboarding_complete = onboarding_complete
        user.stripe_payouts_enabled = payouts_enabled
        await self._session.flush()
        return user


class ProjectRepository:
    """Data access for client projects."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, project: Project) -> Project:
        self._session.add(project)
        await self._session.flush()
        return project

    async def get_by_id(self, project_id: uuid.UUID) -> Project | None:
        result = await self._session.execute(select(Project).where(Project.id == project_id))
        return result.scalar_one_or_none()

    async def get_for_freelancer(
        self, project_id: uuid.UUID, freelancer_id: uuid.UUID
    ) -> Project | None:
        """Fetch a project only if it is assigned to the given freelancer."""
        result = await self._session.execute(
            select(Project).where(
                Project.id == project_id,
                Project.freelancer_id == freelancer_id,
            )
        )
        return result.scalar_one_or_none()

    async def update_status(self, project: Project, new_status: ProjectStatus) -> Project:
        """Update the project status (call AFTER state machine validation)."""
        project.status = new_status.value
        project.updated_at = datetime.now(UTC)
        await self._session.flush()
        return project

    async def list_active_for_freelancer(
        self, freelancer_id: uuid.UUID
    ) -> list[tuple[Project, str | None, datetime | None]]:
        """Active projects for a freelancer with that freelancer's note, if any."""
        stmt = (
            select(Project, WorkItemNote.note, WorkItemNote.updated_at)
            .outerjoin(
                WorkItemNote,
                and_(
                    WorkItemNote.project_id == Project.id,
                    WorkItemNote.user_id == freelancer_id,
                ),
            )
            .where(
                Project.freelancer_id == freelancer_id,
                Project.status.in_(ACTIVE_PROJECT_STATUSES),
            )
            .order_by(Project.updated_at.desc())
        )
        result = await self._session.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]


class ServiceOrderRepository:
    """Data access for purchased service packages."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, order: ServiceOrder) -> ServiceOrder:
        self._session.add(order)
        await self._session.flush()
        return order

    async def get_by_id(self, order_id: uuid.UUID) -> ServiceOrder | None:
        result = await self._session.execute(
            select(ServiceOrder).where(ServiceOrder.id == order_id)
        )
        return result.scalar_one_or_none()

    async def get_package(self, package_id: uuid.UUID) -> ServicePackage | None:
        result = await self._session.execute(
            select(ServicePackage).where(ServicePackage.id == package_id)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self, order: ServiceOrder, new_status: ServiceOrderStatus, **values: Any
    ) -> ServiceOrder:
        """Update the order status (call AFTER state machine validation)."""
        order.status = new_status.value
        for name, value in values.items():
            setattr(order, name, value)
        order.updated_at = datetime.now(UTC)
        await self._session.flush()
        return order

    async def get_for_freelancer(
        self, order_id: uuid.UUID, freelancer_id: uuid.UUID
    ) -> ServiceOrder | None:
        result = await self._session.execute(
            select(ServiceOrder).where(
                ServiceOrder.id == order_id,
                ServiceOrder.freelancer_id == freelancer_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_active_for_freelancer(
        self, freelancer_id: uuid.UUID
    ) -> list[tuple[ServiceOrder, str | None, datetime | None]]:
        """Active service orders for a freelancer with that freelancer's note, if any."""
        stmt = (
            select(ServiceOrder, WorkItemNote.note, WorkItemNote.updated_at)
            .outerjoin(
                WorkItemNote,
                and_(
                    WorkItemNote.service_order_id == ServiceOrder.id,
                    WorkItemNote.user_id == freelancer_id,
                ),
            )
            .where(
                ServiceOrder.freelancer_id == freelancer_id,
                ServiceOrder.status.in_(ACTIVE_SERVICE_ORDER_STATUSES),
            )
            .order_by(ServiceOrder.updated_at.desc())
        )
        result = await self._session.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]


class EscrowRepository:
    """Data access for project and service-order escrows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, escrow: Escrow) -> Escrow:
        self._session.add(escrow)
        await self._session.flush()
        return escrow

    async def get_by_id(self, escrow_id: uuid.UUID) -> Escrow | None:
        result = await self._session.execute(select(Escrow).where(Escrow.id == escrow_id))
        return result.scalar_one_or_none()

    async def get_by_project(self, project_id: uuid.UUID) -> Escrow | None:
        result = await self._session.execute(
            select(Escrow).where(Escrow.project_id == project_id)
        )
        return result.scalar_one_or_none()

    async def get_by_service_order(self, order_id: uuid.UUID) -> Escrow | None:
        result = await self._session.execute(
            select(Escrow).where(Escrow.service_order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def get_by_processor_payment(self, payment_intent_id: str) -> Escrow | None:
        result = await self._session.execute(
            select(Escrow).where(Escrow.processor_payment_id == payment_intent_id)
        )
        return result.scalars().first()

    async def transition_status(
        self,
        escrow: Escrow,
        expected: Collection[EscrowStatus],
        new_status: EscrowStatus,
        **values: Any,
    ) -> bool:
        """Move an escrow to ``new_status`` only if it is still in ``expected``.

        Issues ``UPDATE ... WHERE id = :id AND status IN (:expected)``. Returns
        False when another writer changed the row first; the row is untouched.
        """
        result = await self._session.execute(
            update(Escrow)
            .where(
                Escrow.id == escrow.id,
                Escrow.status.in_([s.value for s in expected]),
            )
            .values(status=new_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self._session.refresh(escrow)
        return True


class TransactionRepository:
    """Data access for the payment ledger. Rows are append-only."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        user_id: uuid.UUID,
        tx_type: TransactionType,
        amount: Decimal,
        *,
        escrow_id: uuid.UUID | None = None,
        processor_id: str | None = None,
        description: str | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
    ) -> Transaction:
        """Append a ledger entry."""
        tx = Transaction(
            user_id=user_id,
            escrow_id=escrow_id,
            type=tx_type.value,
            amount=amount,
            status=status.value,
            processor_id=processor_id,
            description=description,
        )
        self._session.add(tx)
        await self._session.flush()
        return tx

    async def list_for_escrow(self, escrow_id: uuid.UUID) -> list[Transaction]:
        result = await self._session.execute(
            select(Transaction)
            .where(Transaction.escrow_id == escrow_id)
            .order_by(Transaction.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        *,
        tx_type: TransactionType | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Transaction], int]:
        """Page through a user's ledger, newest first. Returns (rows, total)."""
        conditions = [Transaction.user_id == user_id]
        if tx_type is not None:
            conditions.append(Transaction.type == tx_type.value)

        total = await self._session.scalar(
            select(func.count()).select_from(Transaction).where(*conditions)
        )
        result = await self._session.execute(
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def sum_completed(
        self,
        user_id: uuid.UUID,
        tx_type: TransactionType = TransactionType.WITHDRAWAL,
    ) -> Decimal:
        """Sum of a user's COMPLETED entries of one type."""
        total = await self._session.scalar(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.user_id == user_id,
                Transaction.type == tx_type.value,
                Transaction.status == TransactionStatus.COMPLETED.value,
            )
        )
        return round_currency(Decimal(str(total or 0)))


class WorkItemNoteRepository:
    """Data access for freelancer work-item notes, keyed on (user, item)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _item_columns(ref: WorkItemRef) -> dict[str, uuid.UUID | None]:
        if isinstance(ref, ProjectRef):
            return {"project_id": ref.id, "service_order_id": None}
        return {"project_id": None, "service_order_id": ref.id}

    @staticmethod
    def _item_condition(ref: WorkItemRef):
        if isinstance(ref, ProjectRef):
            return WorkItemNote.project_id == ref.id
        return WorkItemNote.service_order_id == ref.id

    async def get(self, user_id: uuid.UUID, ref: WorkItemRef) -> WorkItemNote | None:
        result = await self._session.execute(
            select(WorkItemNote).where(
                WorkItemNote.user_id == user_id,
                self._item_condition(ref),
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, user_id: uuid.UUID, ref: WorkItemRef, text: str) -> WorkItemNote:
        """Create the note or overwrite its text. The unique (user, item) keys back this."""
        note = await self.get(user_id, ref)
        if note is None:
            note = WorkItemNote(user_id=user_id, note=text, **self._item_columns(ref))
            self._session.add(note)
        else:
            note.note = text
            note.updated_at = datetime.now(UTC)
        await self._session.flush()
        return note

    async def delete(self, user_id: uuid.UUID, ref: WorkItemRef) -> int:
        """Delete the note if present. Returns the number of rows removed."""
        result = await self._session.execute(
            delete(WorkItemNote).where(
                WorkItemNote.user_id == user_id,
                self._item_condition(ref),
            )
        )
        return result.rowcount or 0


class NotificationRepository:
    """Data access for user notifications."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, notification: Notification) -> Notification:
        self._session.add(notification)
        await self._session.flush()
        return notification

    async def get_for_user(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> Notification | None:
        result = await self._session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        *,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> tuple[list[Notification], int]:
        """Newest first. Returns (rows, total matching)."""
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = await self._session.scalar(
            select(func.count()).select_from(Notification).where(*conditions)
        )
        result = await self._session.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def count_unread(self, user_id: uuid.UUID) -> int:
        total = await self._session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return int(total or 0)

    async def mark_read(self, notification: Notification) -> Notification:
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(UTC)
            await self._session.flush()
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self._session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete(self, notification: Notification) -> None:
        await self._session.delete(notification)
        await self._session.flush()
