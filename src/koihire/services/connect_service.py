"""Connect Service — onboarding freelancers onto processor connect accounts.

A user gets at most one connect account; later calls reuse the stored id and
only mint a fresh onboarding link.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from koihire.domain.enums import UserRole
from koihire.domain.exceptions import ForbiddenError, NotFoundError
from koihire.infrastructure.database.repositories import UserRepository
from koihire.logging_config import get_logger
from koihire.services.payment_service import PaymentService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.domain.auth import AuthContext
    from koihire.infrastructure.database.orm_models import User
    from koihire.services.payment_service import ConnectAccountStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConnectOnboarding:
    account_id: str
    onboarding_url: str


@dataclass(frozen=True)
class ConnectStatus:
    connected: bool
    account: ConnectAccountStatus | None = None


class ConnectService:
    def __init__(self, session: AsyncSession, payments: PaymentService | None = None) -> None:
        self._session = session
        self._payments = payments or PaymentService()
        self._users = UserRepository(session)

    async def create_connect_account(
        self, caller: AuthContext, country: str = "US"
    ) -> ConnectOnboarding:
        if caller.role != UserRole.FREELANCER:
            raise ForbiddenError("Only freelancers can set up payouts")
        user = await self._get_user_or_raise(caller)

        account_id = user.stripe_connect_account_id
        if account_id is None:
            account_id = await self._payments.create_connect_account(
                user.email, str(user.id), country=country
            )
            await self._users.set_connect_account(user, account_id)
            logger.info("connect.account_created", user_id=str(user.id), account_id=account_id)

        url = await self._payments.create_onboarding_link(account_id)
        return ConnectOnboarding(account_id=account_id, onboarding_url=url)

    async def connect_status(self, caller: AuthContext) -> ConnectStatus:
        """Refresh and persist the account's payout readiness."""
        user = await self._get_user_or_raise(caller)
        if user.stripe_connect_account_id is None:
            return ConnectStatus(connected=False)

        status = await self._payments.get_account_status(user.stripe_connect_account_id)
        await self._users.update_connect_flags(
            user,
            onboarding_complete=status.details_submitted,
            payouts_enabled=status.payouts_enabled,
        )
        return ConnectStatus(connected=True, account=status)

    async def _get_user_or_raise(self, caller: AuthContext) -> User:
        user = await self._users.get_by_id(caller.user_id)
        if user is None:
            raise NotFoundError("User", str(caller.user_id))
        return user
