"""HTTP tests for the active-work feed and work-note routes."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from factories import at, auth_headers, make_project, make_service_order, make_user
from koihire.domain.enums import ProjectStatus, UserRole


async def _seed(session):
    client = await make_user(session, UserRole.CLIENT, first_name="Carla", last_name="Client")
    freelancer = await make_user(session, UserRole.FREELANCER, first_name="Finn")
    project = await make_project(
        session, client, freelancer, ProjectStatus.IN_PROGRESS,
        agreed_amount=Decimal("1500"), updated_at=at(2),
    )
    order = await make_service_order(session, client, freelancer, updated_at=at(3))
    await session.commit()
    return client, freelancer, project, order


class TestActiveWorkRoute:
    @pytest.mark.asyncio
    async def test_requires_auth(self, client) -> None:
        response = await client.get("/api/freelancer/active-work")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "Unauthorized",
            "code": "UNAUTHORIZED",
        }

    @pytest.mark.asyncio
    async def test_garbage_token(self, client) -> None:
        response = await client.get(
            "/api/freelancer/active-work", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_feed_shape(self, client, session) -> None:
        _, freelancer, project, order = await _seed(session)

        response = await client.get("/api/freelancer/active-work", headers=auth_headers(freelancer))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["stats"] == {"totalProjects": 1, "totalServices": 1, "totalActive": 2}

        first, second = data["items"]
        assert first["type"] == "SERVICE"
        assert first["id"] == str(order.id)
        assert first["description"] == "STANDARD Package"
        assert first["detailsUrl"] == f"/orders/{order.id}"
        assert second["type"] == "PROJECT"
        assert Decimal(second["amount"]) == Decimal("1500")
        assert second["client"]["firstName"] == "Carla"
        assert second["detailsUrl"] == f"/projects/{project.id}"
        assert second["note"] is None

    @pytest.mark.asyncio
    async def test_type_filter(self, client, session) -> None:
        _, freelancer, _, _ = await _seed(session)

        response = await client.get(
            "/api/freelancer/active-work",
            params={"type": "projects"},
            headers=auth_headers(freelancer),
        )

        items = response.json()["data"]["items"]
        assert [i["type"] for i in items] == ["PROJECT"]

    @pytest.mark.asyncio
    async def test_unknown_filter(self, client, session) -> None:
        _, freelancer, _, _ = await _seed(session)

        response = await client.get(
            "/api/freelancer/active-work",
            params={"type": "gigs"},
            headers=auth_headers(freelancer),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestWorkNoteRoutes:
    @pytest.mark.asyncio
    async def test_note_lifecycle(self, client, session) -> None:
        _, freelancer, project, _ = await _seed(session)
        url = f"/api/work-notes/project/{project.id}"
        headers = auth_headers(freelancer)

        empty = await client.get(url, headers=headers)
        assert empty.status_code == 200
        assert empty.json()["data"] is None

        saved = await client.post(url, json={"note": "Send invoice"}, headers=headers)
        assert saved.status_code == 200
        assert saved.json()["data"]["note"] == "Send invoice"
        assert saved.json()["data"]["projectId"] == str(project.id)

        feed = await client.get("/api/freelancer/active-work", headers=headers)
        project_item = next(i for i in feed.json()["data"]["items"] if i["type"] == "PROJECT")
        assert project_item["note"] == "Send invoice"
        assert project_item["noteUpdatedAt"] is not None

        deleted = await client.delete(url, headers=headers)
        assert deleted.json() == {
            "success": True,
            "data": None,
            "message": "Note deleted successfully",
        }
        again = await client.delete(url, headers=headers)
        assert again.status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_item_type(self, client, session) -> None:
        _, freelancer, project, _ = await _seed(session)

        response = await client.post(
            f"/api/work-notes/task/{project.id}",
            json={"note": "x"},
            headers=auth_headers(freelancer),
        )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Invalid item type",
            "code": "INVALID_ITEM_TYPE",
        }

    @pytest.mark.asyncio
    async def test_missing_note_text(self, client, session) -> None:
        _, freelancer, project, _ = await _seed(session)

        response = await client.post(
            f"/api/work-notes/project/{project.id}", json={}, headers=auth_headers(freelancer)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Note text is required"

    @pytest.mark.asyncio
    async def test_someone_elses_item(self, client, session) -> None:
        client_user, _, project, _ = await _seed(session)

        response = await client.post(
            f"/api/work-notes/project/{project.id}",
            json={"note": "x"},
            headers=auth_headers(client_user),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unknown_service_order(self, client, session) -> None:
        _, freelancer, _, _ = await _seed(session)

        response = await client.get(
            f"/api/work-notes/service/{uuid.uuid4()}", headers=auth_headers(freelancer)
        )

        assert response.status_code == 404
