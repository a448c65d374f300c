"""Schemas for the notification inbox."""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING, Any

from koihire.domain.enums import NotificationCategory, NotificationPriority
from koihire.schemas.common import CamelModel

if TYPE_CHECKING:
    from koihire.services.notification_service import NotificationPage, NotificationView


class NotificationResponse(CamelModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    priority: NotificationPriority
    is_read: bool
    read_at: datetime | None = None
    project_id: uuid.UUID | None = None
    application_id: uuid.UUID | None = None
    data: dict[str, Any] | None = None
    created_at: datetime
    category: NotificationCategory
    action_url: str | None = None

    @classmethod
    def from_view(cls, view: NotificationView) -> NotificationResponse:
        n = view.notification
        return cls(
            id=n.id,
            type=n.type,
            title=n.title,
            message=n.message,
            priority=n.priority,
            is_read=n.is_read,
            read_at=n.read_at,
            project_id=n.project_id,
            application_id=n.application_id,
            data=n.data,
            created_at=n.created_at,
            category=view.category,
            action_url=view.action_url,
        )


class NotificationListResponse(CamelModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int
    has_more: bool

    @classmethod
    def from_page(cls, page: NotificationPage) -> NotificationListResponse:
        return cls(
            notifications=[NotificationResponse.from_view(v) for v in page.items],
            total=page.total,
            unread_count=page.unread_count,
            has_more=page.has_more,
        )


class UnreadCountResponse(CamelModel):
    count: int


class MarkAllReadResponse(CamelModel):
    updated: int
