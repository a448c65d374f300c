"""Work Service — the freelancer's unified active-work feed.

Active projects and active service orders are read (each joined with the
freelancer's own note), mapped onto the common WorkItem shape and merged
newest-first. Both reads run on the request's session one after the other;
an AsyncSession must not be shared by concurrent queries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from koihire.domain.enums import ActiveWorkFilter
from koihire.domain.exceptions import ValidationError
from koihire.domain.work_items import (
    ActiveWork,
    ClientSummary,
    ProjectWorkItem,
    ServiceWorkItem,
    merge_work_items,
)
from koihire.infrastructure.database.repositories import (
    ProjectRepository,
    ServiceOrderRepository,
)
from koihire.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.infrastructure.database.orm_models import Project, ServiceOrder, User

logger = get_logger(__name__)


def _client_summary(user: User) -> ClientSummary:
    return ClientSummary(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        avatar=user.avatar,
    )


def project_to_work_item(
    project: Project,
    note: str | None = None,
    note_updated_at: datetime | None = None,
) -> ProjectWorkItem:
    """Amount is the agreed amount once hired, else the top of the budget."""
    amount = project.agreed_amount if project.agreed_amount is not None else project.max_budget
    return ProjectWorkItem(
        id=project.id,
        title=project.title,
        description=project.description,
        status=project.status,
        amount=amount,
        client=_client_summary(project.client),
        updated_at=project.updated_at,
        note=note,
        note_updated_at=note_updated_at,
        timeline=project.timeline,
    )


def service_order_to_work_item(
    order: ServiceOrder,
    note: str | None = None,
    note_updated_at: datetime | None = None,
) -> ServiceWorkItem:
    return ServiceWorkItem(
        id=order.id,
        title=order.service.title,
        description=f"{order.package.tier} Package",
        status=order.status,
        amount=order.package_price,
        client=_client_summary(order.client),
        updated_at=order.updated_at,
        note=note,
        note_updated_at=note_updated_at,
        deadline=order.delivery_date,
    )


def parse_filter(value: str | None) -> ActiveWorkFilter:
    if value is None:
        return ActiveWorkFilter.ALL
    try:
        return ActiveWorkFilter(value)
    except ValueError as err:
        allowed = ", ".join(f.value for f in ActiveWorkFilter)
        raise ValidationError(f"type must be one of: {allowed}", field="type") from err


class WorkService:
    """Builds the active-work feed for one freelancer."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._project_repo = ProjectRepository(session)
        self._order_repo = ServiceOrderRepository(session)

    async def list_active_work(
        self,
        freelancer_id: uuid.UUID,
        work_filter: ActiveWorkFilter = ActiveWorkFilter.ALL,
    ) -> ActiveWork:
        projects: list[ProjectWorkItem] = []
        services: list[ServiceWorkItem] = []

        if work_filter in (ActiveWorkFilter.ALL, ActiveWorkFilter.PROJECTS):
            rows = await self._project_repo.list_active_for_freelancer(freelancer_id)
            projects = [project_to_work_item(p, note, at) for p, note, at in rows]

        if work_filter in (ActiveWorkFilter.ALL, ActiveWorkFilter.SERVICES):
            rows = await self._order_repo.list_active_for_freelancer(freelancer_id)
            services = [service_order_to_work_item(o, note, at) for o, note, at in rows]

        work = merge_work_items(projects, services)
        logger.debug(
            "work.active_listed",
            freelancer_id=str(freelancer_id),
            filter=work_filter.value,
            projects=work.total_projects,
            services=work.total_services,
        )
        return work
