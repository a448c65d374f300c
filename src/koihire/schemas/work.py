"""Schemas for the freelancer active-work feed and work notes."""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from pydantic import Field

from koihire.domain.enums import WorkItemKind
from koihire.domain.work_items import ActiveWork, WorkItem
from koihire.schemas.common import CamelModel


class ClientSummaryResponse(CamelModel):
    id: uuid.UUID
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None


class WorkItemResponse(CamelModel):
    """One row of the feed. Projects and service orders share this shape."""

    id: uuid.UUID
    type: WorkItemKind
    title: str
    description: str | None = None
    status: str
    amount: Decimal | None = None
    client: ClientSummaryResponse
    deadline: datetime | None = Field(default=None, description="Service orders only")
    timeline: str | None = Field(default=None, description="Projects only")
    updated_at: datetime
    note: str | None = None
    note_updated_at: datetime | None = None
    details_url: str

    @classmethod
    def from_item(cls, item: WorkItem) -> WorkItemResponse:
        return cls(
            id=item.id,
            type=item.kind,
            title=item.title,
            description=item.description,
            status=item.status,
            amount=item.amount,
            client=ClientSummaryResponse.model_validate(item.client),
            deadline=item.deadline,
            timeline=item.timeline,
            updated_at=item.updated_at,
            note=item.note,
            note_updated_at=item.note_updated_at,
            details_url=item.details_url,
        )


class ActiveWorkStats(CamelModel):
    total_projects: int
    total_services: int
    total_active: int


class ActiveWorkResponse(CamelModel):
    items: list[WorkItemResponse]
    stats: ActiveWorkStats

    @classmethod
    def from_active_work(cls, work: ActiveWork) -> ActiveWorkResponse:
        return cls(
            items=[WorkItemResponse.from_item(i) for i in work.items],
            stats=ActiveWorkStats(
                total_projects=work.total_projects,
                total_services=work.total_services,
                total_active=work.total_active,
            ),
        )


# ---------------------------------------------------------------------------
# Work notes
# ---------------------------------------------------------------------------


class SaveNoteRequest(CamelModel):
    note: str | None = Field(
        default=None,
        description="Note text; must be non-empty",
        examples=["Client prefers updates on Fridays"],
    )


class WorkNoteResponse(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    project_id: uuid.UUID | None = None
    service_order_id: uuid.UUID | None = None
    note: str
    created_at: datetime
    updated_at: datetime
