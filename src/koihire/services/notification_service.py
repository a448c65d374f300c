"""Notification Service — the per-user notification inbox.

Other services call ``send`` inside their own unit of work, so a notification
is persisted only if the business change it announces is committed. Category
and click-through route are attached on every read (domain/notifications.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from koihire.domain.enums import NotificationCategory, NotificationPriority, NotificationType
from koihire.domain.exceptions import NotFoundError
from koihire.domain.notifications import action_route_for, category_for
from koihire.infrastructure.database.orm_models import Notification
from koihire.infrastructure.database.repositories import NotificationRepository
from koihire.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationView:
    notification: Notification
    category: NotificationCategory
    action_url: str | None


@dataclass(frozen=True)
class NotificationPage:
    items: list[NotificationView]
    total: int
    unread_count: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


def decorate(notification: Notification) -> NotificationView:
    return NotificationView(
        notification=notification,
        category=category_for(notification.type),
        action_url=action_route_for(
            notification.type,
            project_id=notification.project_id,
            data=notification.data,
        ),
    )


class NotificationService:
    """Creates, lists and marks notifications for one user at a time."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = NotificationRepository(session)

    async def send(
        self,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        *,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        project_id: uuid.UUID | None = None,
        application_id: uuid.UUID | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        notification = await self._repo.create(
            Notification(
                user_id=user_id,
                type=notification_type.value,
                title=title,
                message=message,
                priority=priority.value,
                project_id=project_id,
                application_id=application_id,
                data=data,
            )
        )
        logger.info(
            "notification.sent",
            notification_id=str(notification.id),
            user_id=str(user_id),
            type=notification_type.value,
        )
        return notification

    async def list_notifications(
        self,
        user_id: uuid.UUID,
        *,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> NotificationPage:
        rows, total = await self._repo.list_for_user(
            user_id, limit=limit, offset=offset, unread_only=unread_only
        )
        unread = await self._repo.count_unread(user_id)
        return NotificationPage(
            items=[decorate(n) for n in rows],
            total=total,
            unread_count=unread,
            limit=limit,
            offset=offset,
        )

    async def unread_count(self, user_id: uuid.UUID) -> int:
        return await self._repo.count_unread(user_id)

    async def mark_as_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> NotificationView:
        """Mark one notification read. Already-read notifications keep their read_at."""
        notification = await self._get_owned_or_raise(notification_id, user_id)
        await self._repo.mark_read(notification)
        return decorate(notification)

    async def mark_all_as_read(self, user_id: uuid.UUID) -> int:
        updated = await self._repo.mark_all_read(user_id)
        logger.info("notification.marked_all_read", user_id=str(user_id), count=updated)
        return updated

    async def delete(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> None:
        notification = await self._get_owned_or_raise(notification_id, user_id)
        await self._repo.delete(notification)

    async def _get_owned_or_raise(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> Notification:
        notification = await self._repo.get_for_user(notification_id, user_id)
        if notification is None:
            raise NotFoundError("Notification", str(notification_id))
        return notification
