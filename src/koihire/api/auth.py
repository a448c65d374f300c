"""JWT handling for the request AuthContext.

Tokens are issued by the auth service; this service verifies them and reads
``sub`` (user id), ``role`` and ``email``. ``create_access_token`` exists for
local tooling and tests.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from koihire.config import get_settings
from koihire.domain.auth import AuthContext
from koihire.domain.enums import UserRole
from koihire.domain.exceptions import UnauthorizedError


def create_access_token(
    user_id: uuid.UUID,
    role: UserRole = UserRole.CLIENT,
    email: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    settings = get_settings()
    expire = datetime.now(UTC) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.jwt_expire_minutes
    )
    claims = {"sub": str(user_id), "role": role.value, "exp": expire}
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AuthContext:
    """Verify a token and build the caller's AuthContext.

    Raises:
        UnauthorizedError: bad signature, expired, or malformed claims.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        user_id = uuid.UUID(str(payload.get("sub")))
        role = UserRole(payload.get("role", UserRole.CLIENT.value))
    except (JWTError, ValueError) as err:
        raise UnauthorizedError("Invalid or expired token") from err
    return AuthContext(user_id=user_id, role=role, email=payload.get("email"))
