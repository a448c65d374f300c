"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00+00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

MONEY = sa.Numeric(12, 2)


def _in(column: str, *values: str) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("avatar", sa.String(500)),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column(
            "stripe_connect_account_id",
            sa.String(64),
            comment="Connect account receiving freelancer payouts",
        ),
        sa.Column("stripe_onboarding_complete", sa.Boolean(), nullable=False),
        sa.Column("stripe_payouts_enabled", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint(_in("role", "CLIENT", "FREELANCER", "ADMIN"), name="ck_user_valid_role"),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "client_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "freelancer_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            comment="Set when a freelancer is hired",
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("timeline", sa.String(100)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("min_budget", MONEY, nullable=False),
        sa.Column("max_budget", MONEY, nullable=False),
        sa.Column("agreed_amount", MONEY),
        sa.Column("buyer_fee", MONEY),
        sa.Column("total_charged", MONEY),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            _in(
                "status",
                "OPEN", "IN_PROGRESS", "PENDING_REVIEW", "PAUSED",
                "DISPUTED", "COMPLETED", "CANCELLED",
            ),
            name="ck_project_valid_status",
        ),
        sa.CheckConstraint("min_budget <= max_budget", name="ck_project_budget_range"),
    )
    op.create_index("idx_project_freelancer_status", "projects", ["freelancer_id", "status"])
    op.create_index("idx_project_client", "projects", ["client_id"])

    op.create_table(
        "services",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("title", sa.String(200), nullable=False),
    )

    op.create_table(
        "service_packages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "service_id",
            sa.Uuid(),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("delivery_days", sa.Integer(), nullable=False),
        sa.Column(
            "revisions",
            sa.Integer(),
            nullable=False,
            comment="Revision rounds included in the price",
        ),
        sa.CheckConstraint(
            _in("tier", "BASIC", "STANDARD", "PREMIUM"), name="ck_package_valid_tier"
        ),
    )

    op.create_table(
        "service_orders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "service_id",
            sa.Uuid(),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "package_id",
            sa.Uuid(),
            sa.ForeignKey("service_packages.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "client_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "freelancer_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(24), nullable=False),
        sa.Column("package_price", MONEY, nullable=False),
        _timestamp("delivery_date", nullable=True),
        sa.Column("revisions_used", sa.Integer(), nullable=False),
        _timestamp("delivered_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            _in(
                "status",
                "PENDING", "ACCEPTED", "IN_PROGRESS", "DELIVERED",
                "REVISION_REQUESTED", "COMPLETED", "CANCELLED",
            ),
            name="ck_service_order_valid_status",
        ),
    )
    op.create_index(
        "idx_service_order_freelancer_status", "service_orders", ["freelancer_id", "status"]
    )

    op.create_table(
        "escrows",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            unique=True,
        ),
        sa.Column(
            "service_order_id",
            sa.Uuid(),
            sa.ForeignKey("service_orders.id", ondelete="CASCADE"),
            unique=True,
        ),
        sa.Column(
            "amount",
            MONEY,
            nullable=False,
            comment="agreed_amount + buyer fee, i.e. what the client was charged",
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            comment="Current lifecycle state (guarded by EscrowStateMachine)",
        ),
        sa.Column("processor_payment_id", sa.String(100)),
        _timestamp("created_at"),
        _timestamp("funded_at", nullable=True),
        _timestamp("released_at", nullable=True),
        _timestamp("refunded_at", nullable=True),
        sa.CheckConstraint(
            _in("status", "PENDING", "FUNDED", "RELEASED", "REFUNDED", "DISPUTED"),
            name="ck_escrow_valid_status",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_escrow_non_negative_amount"),
        sa.CheckConstraint(
            "(project_id IS NULL) <> (service_order_id IS NULL)",
            name="ck_escrow_exactly_one_item",
        ),
    )
    op.create_index("idx_escrow_status", "escrows", ["status"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("escrow_id", sa.Uuid(), sa.ForeignKey("escrows.id", ondelete="SET NULL")),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("processor_id", sa.String(100)),
        sa.Column("description", sa.String(500)),
        _timestamp("created_at"),
        sa.CheckConstraint(
            _in("type", "DEPOSIT", "WITHDRAWAL", "FEE", "REFUND"),
            name="ck_transaction_valid_type",
        ),
        sa.CheckConstraint(
            _in("status", "PENDING", "COMPLETED", "FAILED"), name="ck_transaction_valid_status"
        ),
        sa.CheckConstraint("amount >= 0", name="ck_transaction_non_negative_amount"),
    )
    op.create_index("idx_transaction_user_type", "transactions", ["user_id", "type"])
    op.create_index("idx_transaction_escrow", "transactions", ["escrow_id"])

    op.create_table(
        "work_item_notes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="CASCADE")),
        sa.Column(
            "service_order_id",
            sa.Uuid(),
            sa.ForeignKey("service_orders.id", ondelete="CASCADE"),
        ),
        sa.Column("note", sa.Text(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id", "project_id", name="uq_note_user_project"),
        sa.UniqueConstraint("user_id", "service_order_id", name="uq_note_user_service_order"),
        sa.CheckConstraint(
            "(project_id IS NULL) <> (service_order_id IS NULL)",
            name="ck_note_exactly_one_item",
        ),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("type", sa.String(48), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        _timestamp("read_at", nullable=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="SET NULL")),
        sa.Column("application_id", sa.Uuid()),
        sa.Column("data", sa.JSON()),
        _timestamp("created_at"),
        sa.CheckConstraint(
            _in("priority", "LOW", "NORMAL", "HIGH", "URGENT"),
            name="ck_notification_valid_priority",
        ),
    )
    op.create_index("idx_notification_user_read", "notifications", ["user_id", "is_read"])
    op.create_index("idx_notification_created_at", "notifications", ["created_at"])


def downgrade() -> None:
    for table in (
        "notifications",
        "work_item_notes",
        "transactions",
        "escrows",
        "service_orders",
        "service_packages",
        "services",
        "projects",
        "users",
    ):
        op.drop_table(table)
