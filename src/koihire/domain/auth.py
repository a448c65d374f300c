"""Per-request caller identity.

Built by the API layer from a verified token and passed explicitly into
services. There is no process-wide "current user".
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from koihire.domain.enums import UserRole


@dataclass(frozen=True)
class AuthContext:
    user_id: uuid.UUID
    role: UserRole = UserRole.CLIENT
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
