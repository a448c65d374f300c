"""Factory functions for creating test data.

Factories flush but never commit; API tests commit explicitly before calling
the app so that request sessions see the rows.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from koihire.api.auth import create_access_token
from koihire.domain.auth import AuthContext
from koihire.domain.enums import PackageTier, ProjectStatus, ServiceOrderStatus, UserRole
from koihire.domain.pricing import compute_charge_breakdown
from koihire.infrastructure.database.orm_models import (
    Project,
    Service,
    ServiceOrder,
    ServicePackage,
    User,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def make_user(
    session: AsyncSession,
    role: UserRole = UserRole.CLIENT,
    first_name: str = "Test",
    last_name: str | None = None,
    **overrides,
) -> User:
    user = User(
        email=overrides.pop("email", f"{uuid.uuid4().hex[:10]}@example.com"),
        first_name=first_name,
        last_name=last_name or role.value.title(),
        role=role.value,
        **overrides,
    )
    session.add(user)
    await session.flush()
    return user


async def make_project(
    session: AsyncSession,
    client: User,
    freelancer: User | None = None,
    status: ProjectStatus = ProjectStatus.OPEN,
    agreed_amount: Decimal | None = None,
    min_budget: Decimal = Decimal("1000.00"),
    max_budget: Decimal = Decimal("2000.00"),
    updated_at: datetime | None = None,
    title: str = "Landing page redesign",
) -> Project:
    project = Project(
        client_id=client.id,
        freelancer_id=freelancer.id if freelancer else None,
        title=title,
        description="Rebuild the marketing site",
        timeline="2-4 weeks",
        status=status.value,
        min_budget=min_budget,
        max_budget=max_budget,
    )
    if agreed_amount is not None:
        breakdown = compute_charge_breakdown(agreed_amount)
        project.agreed_amount = breakdown.agreed_amount
        project.buyer_fee = breakdown.buyer_fee
        project.total_charged = breakdown.total_charged
    if updated_at is not None:
        project.updated_at = updated_at
    session.add(project)
    await session.flush()
    return project


async def make_hired_project(
    session: AsyncSession,
    agreed_amount: Decimal = Decimal("1500.00"),
) -> tuple[User, User, Project]:
    """Client + freelancer + an IN_PROGRESS project ready to be funded."""
    client = await make_user(session, UserRole.CLIENT, first_name="Carla")
    freelancer = await make_user(session, UserRole.FREELANCER, first_name="Finn")
    project = await make_project(
        session,
        client,
        freelancer,
        status=ProjectStatus.IN_PROGRESS,
        agreed_amount=agreed_amount,
    )
    return client, freelancer, project


async def make_package(
    session: AsyncSession,
    owner: User,
    price: Decimal = Decimal("250.00"),
    tier: PackageTier = PackageTier.STANDARD,
    revisions: int = 1,
    title: str = "Logo design",
) -> ServicePackage:
    """A service owned by ``owner`` with one package."""
    service = Service(user_id=owner.id, title=title)
    session.add(service)
    await session.flush()
    package = ServicePackage(
        service_id=service.id,
        tier=tier.value,
        price=price,
        delivery_days=5,
        revisions=revisions,
        service=service,
    )
    session.add(package)
    await session.flush()
    return package


async def make_service_order(
    session: AsyncSession,
    client: User,
    freelancer: User,
    status: ServiceOrderStatus = ServiceOrderStatus.IN_PROGRESS,
    tier: PackageTier = PackageTier.STANDARD,
    price: Decimal = Decimal("250.00"),
    revisions: int = 1,
    updated_at: datetime | None = None,
    delivery_date: datetime | None = None,
    title: str = "Logo design",
) -> ServiceOrder:
    package = await make_package(session, freelancer, price, tier, revisions, title)
    service = package.service
    order = ServiceOrder(
        service_id=service.id,
        package_id=package.id,
        client_id=client.id,
        freelancer_id=freelancer.id,
        status=status.value,
        package_price=price,
        delivery_date=delivery_date,
        service=service,
        package=package,
        client=client,
        freelancer=freelancer,
    )
    if updated_at is not None:
        order.updated_at = updated_at
    session.add(order)
    await session.flush()
    return order


def ctx(user: User) -> AuthContext:
    """AuthContext for a stored user."""
    return AuthContext(user_id=user.id, role=UserRole(user.role), email=user.email)


def at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=UTC)


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, role=UserRole(user.role), email=user.email)
    return {"Authorization": f"Bearer {token}"}
