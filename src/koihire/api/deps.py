"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the caller's AuthContext, and the processor and proxy clients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from koihire.api.auth import decode_access_token
from koihire.config import get_settings
from koihire.domain.auth import AuthContext
from koihire.domain.exceptions import UnauthorizedError
from koihire.infrastructure.database.engine import get_async_session
from koihire.services.payment_service import PaymentService
from koihire.services.proxy_service import ProxyService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession


bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthContext:
    """Bearer-token caller. Missing or invalid token -> 401."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return _authenticate(credentials.credentials)


async def get_session_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthContext:
    """Browser-session caller: session cookie first, bearer token as fallback."""
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise UnauthorizedError()
    return _authenticate(token)


def _authenticate(token: str) -> AuthContext:
    user = decode_access_token(token)
    structlog.contextvars.bind_contextvars(user_id=str(user.user_id))
    return user


def get_payment_service() -> PaymentService:
    return PaymentService()


def get_proxy_service() -> ProxyService:
    return ProxyService()
