"""HTTP tests for service orders and their escrow."""

from __future__ import annotations

from decimal import Decimal

import pytest

from factories import auth_headers, make_package, make_user
from koihire.domain.enums import UserRole


async def _place(client, package, buyer) -> dict:
    response = await client.post(
        "/api/service-orders",
        json={"packageId": str(package.id)},
        headers=auth_headers(buyer),
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestServiceOrderRoutes:
    @pytest.mark.asyncio
    async def test_paid_order_flow(self, client, session) -> None:
        buyer = await make_user(session, UserRole.CLIENT)
        seller = await make_user(session, UserRole.FREELANCER)
        package = await make_package(session, seller, price=Decimal("400.00"))
        await session.commit()

        order = await _place(client, package, buyer)
        assert order["status"] == "PENDING"
        assert Decimal(order["packagePrice"]) == Decimal("400.00")
        order_id = order["id"]

        intent = await client.post(
            "/api/payments/service-order/create-payment-intent",
            json={"orderId": order_id},
            headers=auth_headers(buyer),
        )
        assert intent.status_code == 200
        assert Decimal(intent.json()["data"]["breakdown"]["totalCharged"]) == Decimal("410.00")

        confirmed = await client.post(
            f"/api/payments/service-order/{order_id}/confirm",
            json={"paymentIntentId": intent.json()["data"]["paymentIntentId"]},
            headers=auth_headers(buyer),
        )
        assert confirmed.json()["data"]["status"] == "FUNDED"
        assert confirmed.json()["data"]["serviceOrderId"] == order_id
        assert confirmed.json()["data"]["projectId"] is None

        for step in ("start", "deliver"):
            moved = await client.post(
                f"/api/service-orders/{order_id}/{step}", headers=auth_headers(seller)
            )
            assert moved.status_code == 200
        assert moved.json()["message"] == "Order delivered"

        approved = await client.post(
            f"/api/service-orders/{order_id}/approve", headers=auth_headers(buyer)
        )
        assert approved.json()["data"]["status"] == "COMPLETED"

        payment = await client.get(
            f"/api/payments/service-order/{order_id}", headers=auth_headers(seller)
        )
        data = payment.json()["data"]
        assert data["orderStatus"] == "COMPLETED"
        assert data["escrow"]["status"] == "RELEASED"
        assert sorted(t["type"] for t in data["escrow"]["transactions"]) == [
            "DEPOSIT",
            "FEE",
            "WITHDRAWAL",
        ]

        earnings = await client.get("/api/payments/earnings", headers=auth_headers(seller))
        assert Decimal(earnings.json()["data"]["lifetimeEarnings"]) == Decimal("400")

    @pytest.mark.asyncio
    async def test_cancel_pending_order(self, client, session) -> None:
        buyer = await make_user(session, UserRole.CLIENT)
        seller = await make_user(session, UserRole.FREELANCER)
        package = await make_package(session, seller)
        await session.commit()
        order = await _place(client, package, buyer)

        cancelled = await client.post(
            f"/api/service-orders/{order['id']}/cancel",
            json={"reason": "Ordered the wrong tier"},
            headers=auth_headers(buyer),
        )

        assert cancelled.status_code == 200
        assert cancelled.json()["message"] == "Order cancelled"
        assert cancelled.json()["data"]["status"] == "CANCELLED"

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_order(self, client, session) -> None:
        buyer = await make_user(session, UserRole.CLIENT)
        seller = await make_user(session, UserRole.FREELANCER)
        outsider = await make_user(session, UserRole.CLIENT)
        package = await make_package(session, seller)
        await session.commit()
        order = await _place(client, package, buyer)

        response = await client.get(
            f"/api/service-orders/{order['id']}", headers=auth_headers(outsider)
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_revision_note_required(self, client, session) -> None:
        buyer = await make_user(session, UserRole.CLIENT)
        seller = await make_user(session, UserRole.FREELANCER)
        package = await make_package(session, seller)
        await session.commit()
        order = await _place(client, package, buyer)

        response = await client.post(
            f"/api/service-orders/{order['id']}/revision",
            json={"note": ""},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
