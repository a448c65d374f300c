"""Tests for notification category and click-through routing."""

from __future__ import annotations

import pytest

from koihire.domain.enums import NotificationCategory, NotificationType
from koihire.domain.notifications import action_route_for, category_for

PROJECT_ID = "11111111-2222-3333-4444-555555555555"


class TestCategory:
    @pytest.mark.parametrize(
        ("notification_type", "category"),
        [
            (NotificationType.NEW_APPLICATION, NotificationCategory.APPLICATION),
            (NotificationType.APPLICATION_REJECTED, NotificationCategory.APPLICATION),
            (NotificationType.SUBMISSION_RECEIVED, NotificationCategory.PROJECT),
            (NotificationType.PROJECT_CANCELLED, NotificationCategory.PROJECT),
            (NotificationType.PAYMENT_RELEASED, NotificationCategory.PAYMENT),
        ],
    )
    def test_mapped_types(self, notification_type: str, category: str) -> None:
        assert category_for(notification_type) == category

    def test_unmapped_types_fall_back_to_system(self) -> None:
        assert category_for(NotificationType.ESCROW_FUNDED) == NotificationCategory.SYSTEM
        assert category_for("SOMETHING_NEW") == NotificationCategory.SYSTEM


class TestActionRoute:
    def test_no_route_types(self) -> None:
        assert action_route_for(NotificationType.APPLICATION_REJECTED, PROJECT_ID) is None
        assert action_route_for(NotificationType.PROJECT_CANCELLED, PROJECT_ID) is None
        assert (
            action_route_for(NotificationType.SERVICE_ORDER_CANCELLED, data={"orderId": "o1"})
            is None
        )

    def test_service_order_goes_to_order(self) -> None:
        route = action_route_for(NotificationType.SERVICE_ORDER_DELIVERED, data={"orderId": "o1"})
        assert route == "/orders/o1"

    def test_service_order_without_order_id_uses_project(self) -> None:
        route = action_route_for(NotificationType.SERVICE_ORDER_ACCEPTED, PROJECT_ID, data={})
        assert route == f"/projects/{PROJECT_ID}"

    def test_new_application_goes_to_applications(self) -> None:
        route = action_route_for(NotificationType.NEW_APPLICATION, PROJECT_ID)
        assert route == f"/projects/{PROJECT_ID}/applications"

    def test_project_fallback(self) -> None:
        assert action_route_for(NotificationType.PAYMENT_RELEASED, PROJECT_ID) == (
            f"/projects/{PROJECT_ID}"
        )

    def test_nothing_to_link(self) -> None:
        assert action_route_for(NotificationType.SYSTEM) is None
