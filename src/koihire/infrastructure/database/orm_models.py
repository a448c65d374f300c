"""SQLAlchemy 2.0 ORM models for the KoiHire marketplace.

Tables:
    1. users              — clients, freelancers and admins (+ connect account state).
    2. projects           — client-posted jobs.
    3. services / service_packages / service_orders — packaged services and purchases.
    4. escrows            — funds held for a project or a service order (1:1 with either).
    5. transactions       — ledger entries; immutable once COMPLETED.
    6. work_item_notes    — a freelancer's private note on one work item.
    7. notifications      — events surfaced to a user.

Design decisions:
    - UUIDs as primary keys (no sequential leakage of marketplace volume).
    - Decimal for money (Numeric(12, 2)); never floats.
    - CHECK constraints mirror the status enums so bad values fail at the DB.
    - Portable Uuid/JSON column types so the same metadata runs on PostgreSQL
      and on SQLite in tests.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

MONEY = Numeric(12, 2)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _status_check(column: str, values: list[str], name: str) -> CheckConstraint:
    quoted = ", ".join(f"'{v}'" for v in values)
    return CheckConstraint(f"{column} IN ({quoted})", name=name)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="CLIENT")

    # --- Payment processor connect account ---
    stripe_connect_account_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        default=None,
        comment="Connect account receiving freelancer payouts",
    )
    stripe_onboarding_complete: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    stripe_payouts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        _status_check("role", ["CLIENT", "FREELANCER", "ADMIN"], "ck_user_valid_role"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"


# ---------------------------------------------------------------------------
# 2. projects
# ---------------------------------------------------------------------------
class Project(Base):
    """A client-posted job."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    freelancer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        default=None,
        comment="Set when a freelancer is hired",
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    timeline: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")

    # --- Financials ---
    min_budget: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    max_budget: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    agreed_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True, default=None)
    buyer_fee: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True, default=None)
    total_charged: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    client: Mapped[User] = relationship("User", foreign_keys=[client_id], lazy="selectin")
    freelancer: Mapped[User | None] = relationship(
        "User", foreign_keys=[freelancer_id], lazy="selectin"
    )

    __table_args__ = (
        _status_check(
            "status",
            ["OPEN", "IN_PROGRESS", "PENDING_REVIEW", "PAUSED", "DISPUTED", "COMPLETED", "CANCELLED"],
            "ck_project_valid_status",
        ),
        CheckConstraint("min_budget <= max_budget", name="ck_project_budget_range"),
        Index("idx_project_freelancer_status", "freelancer_id", "status"),
        Index("idx_project_client", "client_id"),
    )

    def __repr__(self) -> str:
        return f"<Project id={self.id} status={self.status}>"


# ---------------------------------------------------------------------------
# 3. services / service_packages / service_orders
# ---------------------------------------------------------------------------
class Service(Base):
    """A freelancer's packaged offering."""

    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)


class ServicePackage(Base):
    __tablename__ = "service_packages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    delivery_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    revisions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, comment="Revision rounds included in the price"
    )

    service: Mapped[Service] = relationship("Service", lazy="selectin")

    __table_args__ = (
        _status_check("tier", ["BASIC", "STANDARD", "PREMIUM"], "ck_package_valid_tier"),
    )


class ServiceOrder(Base):
    """A purchased package. ``package_price`` is copied at purchase and never changes."""

    __tablename__ = "service_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    package_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_packages.id", ondelete="RESTRICT"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    freelancer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(24), nullable=False, default="PENDING")
    package_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revisions_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    service: Mapped[Service] = relationship("Service", lazy="selectin")
    package: Mapped[ServicePackage] = relationship("ServicePackage", lazy="selectin")
    client: Mapped[User] = relationship("User", foreign_keys=[client_id], lazy="selectin")
    freelancer: Mapped[User] = relationship(
        "User", foreign_keys=[freelancer_id], lazy="selectin"
    )

    __table_args__ = (
        _status_check(
            "status",
            [
                "PENDING", "ACCEPTED", "IN_PROGRESS", "DELIVERED",
                "REVISION_REQUESTED", "COMPLETED", "CANCELLED",
            ],
            "ck_service_order_valid_status",
        ),
        Index("idx_service_order_freelancer_status", "freelancer_id", "status"),
    )


# ---------------------------------------------------------------------------
# 4. escrows
# ---------------------------------------------------------------------------
class Escrow(Base):
    """Funds held for one project or one service order until the client approves."""

    __tablename__ = "escrows"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    service_order_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("service_orders.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        MONEY,
        nullable=False,
        comment="agreed_amount + buyer fee, i.e. what the client was charged",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="PENDING",
        comment="Current lifecycle state (guarded by EscrowStateMachine)",
    )
    processor_payment_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, default=None
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    funded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project: Mapped[Project | None] = relationship("Project", lazy="selectin")
    service_order: Mapped[ServiceOrder | None] = relationship("ServiceOrder", lazy="selectin")

    __table_args__ = (
        _status_check(
            "status",
            ["PENDING", "FUNDED", "RELEASED", "REFUNDED", "DISPUTED"],
            "ck_escrow_valid_status",
        ),
        CheckConstraint("amount >= 0", name="ck_escrow_non_negative_amount"),
        CheckConstraint(
            "(project_id IS NULL) <> (service_order_id IS NULL)",
            name="ck_escrow_exactly_one_item",
        ),
        Index("idx_escrow_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Escrow id={self.id} status={self.status} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 5. transactions (ledger)
# ---------------------------------------------------------------------------
class Transaction(Base):
    """A ledger entry. Rows are inserted COMPLETED and never updated afterwards."""

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    escrow_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("escrows.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    processor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        _status_check(
            "type", ["DEPOSIT", "WITHDRAWAL", "FEE", "REFUND"], "ck_transaction_valid_type"
        ),
        _status_check(
            "status", ["PENDING", "COMPLETED", "FAILED"], "ck_transaction_valid_status"
        ),
        CheckConstraint("amount >= 0", name="ck_transaction_non_negative_amount"),
        Index("idx_transaction_user_type", "user_id", "type"),
        Index("idx_transaction_escrow", "escrow_id"),
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 6. work_item_notes
# ---------------------------------------------------------------------------
class WorkItemNote(Base):
    """A freelancer's private note on exactly one project or service order."""

    __tablename__ = "work_item_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True
    )
    service_order_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("service_orders.id", ondelete="CASCADE"), nullable=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_note_user_project"),
        UniqueConstraint("user_id", "service_order_id", name="uq_note_user_service_order"),
        CheckConstraint(
            "(project_id IS NULL) <> (service_order_id IS NULL)",
            name="ck_note_exactly_one_item",
        ),
    )


# ---------------------------------------------------------------------------
# 7. notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    """An event surfaced to a user. ``is_read`` only ever goes False -> True."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(48), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="NORMAL")
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    application_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        _status_check(
            "priority", ["LOW", "NORMAL", "HIGH", "URGENT"], "ck_notification_valid_priority"
        ),
        Index("idx_notification_user_read", "user_id", "is_read"),
        Index("idx_notification_created_at", "created_at"),
    )
