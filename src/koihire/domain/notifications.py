"""Notification type mapping.

Translates a backend event type into a display category and an optional
click-through route. The route is derived on every read from the type and the
payload; it is never stored.
"""

from __future__ import annotations

from typing import Any

from koihire.domain.enums import NotificationCategory, NotificationType

CATEGORY_BY_TYPE: dict[str, NotificationCategory] = {
    NotificationType.NEW_APPLICATION: NotificationCategory.APPLICATION,
    NotificationType.APPLICATION_ACCEPTED: NotificationCategory.APPLICATION,
    NotificationType.APPLICATION_REJECTED: NotificationCategory.APPLICATION,
    NotificationType.PROJECT_UPDATE: NotificationCategory.PROJECT,
    NotificationType.SUBMISSION_RECEIVED: NotificationCategory.PROJECT,
    NotificationType.WORK_APPROVED: NotificationCategory.PROJECT,
    NotificationType.CHANGES_REQUESTED: NotificationCategory.PROJECT,
    NotificationType.PAYMENT_RELEASED: NotificationCategory.PAYMENT,
    NotificationType.PROJECT_COMPLETED: NotificationCategory.PROJECT,
    NotificationType.PROJECT_CANCELLED: NotificationCategory.PROJECT,
}

# Display-only notifications: clicking them goes nowhere.
NO_ROUTE_TYPES: frozenset[str] = frozenset(
    {
        NotificationType.APPLICATION_REJECTED,
        NotificationType.SERVICE_ORDER_CANCELLED,
        NotificationType.PROJECT_CANCELLED,
    }
)

SERVICE_ORDER_PREFIX = "SERVICE_ORDER_"


def category_for(notification_type: str) -> NotificationCategory:
    """Map an event type to its display category; unknown types are ``system``."""
    return CATEGORY_BY_TYPE.get(notification_type, NotificationCategory.SYSTEM)


def action_route_for(
    notification_type: str,
    project_id: object | None = None,
    data: dict[str, Any] | None = None,
) -> str | None:
    """Derive the click-through route. Rules are evaluated in order."""
    if notification_type in NO_ROUTE_TYPES:
        return None

    order_id = (data or {}).get("orderId")
    if notification_type.startswith(SERVICE_ORDER_PREFIX) and order_id:
        return f"/orders/{order_id}"

    if notification_type == NotificationType.NEW_APPLICATION and project_id:
        return f"/projects/{project_id}/applications"

    if project_id:
        return f"/projects/{project_id}"

    return None
