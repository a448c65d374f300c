"""Notification inbox routes.

Routes:
    GET    /api/notifications                 — List (limit, offset, unreadOnly)
    GET    /api/notifications/unread-count    — Badge count
    PATCH  /api/notifications/mark-all-read   — Mark every unread notification read
    PATCH  /api/notifications/{id}/read       — Mark one read
    DELETE /api/notifications/{id}            — Delete one
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Query

from koihire.api.deps import get_current_user, get_db_session
from koihire.domain.auth import AuthContext
from koihire.schemas.common import ApiResponse
from koihire.schemas.notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from koihire.services.notification_service import NotificationService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=ApiResponse[NotificationListResponse],
    summary="List the caller's notifications",
)
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NotificationListResponse]:
    page = await NotificationService(session).list_notifications(
        user.user_id, limit=limit, offset=offset, unread_only=unread_only
    )
    return ApiResponse(data=NotificationListResponse.from_page(page))


@router.get(
    "/unread-count",
    response_model=ApiResponse[UnreadCountResponse],
    summary="Count unread notifications",
)
async def unread_count(
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UnreadCountResponse]:
    count = await NotificationService(session).unread_count(user.user_id)
    return ApiResponse(data=UnreadCountResponse(count=count))


@router.patch(
    "/mark-all-read",
    response_model=ApiResponse[MarkAllReadResponse],
    summary="Mark all notifications read",
)
async def mark_all_read(
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MarkAllReadResponse]:
    updated = await NotificationService(session).mark_all_as_read(user.user_id)
    return ApiResponse(data=MarkAllReadResponse(updated=updated))


@router.patch(
    "/{notification_id}/read",
    response_model=ApiResponse[NotificationResponse],
    summary="Mark one notification read",
)
async def mark_read(
    notification_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NotificationResponse]:
    view = await NotificationService(session).mark_as_read(notification_id, user.user_id)
    return ApiResponse(data=NotificationResponse.from_view(view))


@router.delete(
    "/{notification_id}",
    response_model=ApiResponse[None],
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await NotificationService(session).delete(notification_id, user.user_id)
    return ApiResponse(message="Notification deleted")
