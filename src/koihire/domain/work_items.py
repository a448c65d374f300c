"""Work items: the freelancer's in-flight obligations across projects and orders.

Two shapes live here:

    WorkItemRef   — a tagged reference (ProjectRef | ServiceRef) parsed from the
                    ``/work-notes/{itemType}/{itemId}`` URL. Repositories branch
                    on the variant, never on a raw string.
    WorkItem      — the discriminated union (ProjectWorkItem | ServiceWorkItem)
                    rendered in the active-work feed. Both variants expose the
                    same attributes so merging and sorting see one type.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from koihire.domain.enums import ProjectStatus, ServiceOrderStatus, WorkItemKind
from koihire.domain.exceptions import InvalidItemTypeError, NotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from decimal import Decimal

ACTIVE_PROJECT_STATUSES: frozenset[str] = frozenset(
    {
        ProjectStatus.IN_PROGRESS,
        ProjectStatus.PENDING_REVIEW,
        ProjectStatus.PAUSED,
        ProjectStatus.DISPUTED,
    }
)

ACTIVE_SERVICE_ORDER_STATUSES: frozenset[str] = frozenset(
    {
        ServiceOrderStatus.PENDING,
        ServiceOrderStatus.ACCEPTED,
        ServiceOrderStatus.IN_PROGRESS,
        ServiceOrderStatus.DELIVERED,
        ServiceOrderStatus.REVISION_REQUESTED,
    }
)


# ---------------------------------------------------------------------------
# Item references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectRef:
    id: uuid.UUID
    kind: ClassVar[WorkItemKind] = WorkItemKind.PROJECT


@dataclass(frozen=True)
class ServiceRef:
    id: uuid.UUID
    kind: ClassVar[WorkItemKind] = WorkItemKind.SERVICE


WorkItemRef = ProjectRef | ServiceRef

_REF_BY_URL_TYPE: dict[str, type[ProjectRef] | type[ServiceRef]] = {
    "project": ProjectRef,
    "service": ServiceRef,
}


def parse_item_ref(item_type: str, item_id: str) -> WorkItemRef:
    """Build a WorkItemRef from URL segments.

    Raises:
        InvalidItemTypeError: item_type is not exactly ``project`` or ``service``.
        NotFoundError: item_id is not a valid identifier (nothing can match it).
    """
    ref_cls = _REF_BY_URL_TYPE.get(item_type)
    if ref_cls is None:
        raise InvalidItemTypeError(item_type)
    try:
        parsed = uuid.UUID(str(item_id))
    except ValueError as err:
        label = "Project" if ref_cls is ProjectRef else "Service order"
        raise NotFoundError(label, item_id) from err
    return ref_cls(id=parsed)


# ---------------------------------------------------------------------------
# Feed items
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientSummary:
    id: uuid.UUID
    first_name: str | None
    last_name: str | None
    avatar: str | None = None


@dataclass(frozen=True)
class _WorkItemBase:
    id: uuid.UUID
    title: str
    description: str | None
    status: str
    amount: Decimal | None
    client: ClientSummary
    updated_at: datetime
    note: str | None = None
    note_updated_at: datetime | None = None


@dataclass(frozen=True)
class ProjectWorkItem(_WorkItemBase):
    """A hired project. Projects have no delivery date."""

    timeline: str | None = None
    kind: ClassVar[WorkItemKind] = WorkItemKind.PROJECT

    @property
    def deadline(self) -> datetime | None:
        return None

    @property
    def details_url(self) -> str:
        return f"/projects/{self.id}"


@dataclass(frozen=True)
class ServiceWorkItem(_WorkItemBase):
    """A purchased service package being delivered."""

    deadline: datetime | None = None
    kind: ClassVar[WorkItemKind] = WorkItemKind.SERVICE

    @property
    def timeline(self) -> str | None:
        return None

    @property
    def details_url(self) -> str:
        return f"/orders/{self.id}"


WorkItem = ProjectWorkItem | ServiceWorkItem


@dataclass(frozen=True)
class ActiveWork:
    items: list[WorkItem]
    total_projects: int
    total_services: int

    @property
    def total_active(self) -> int:
        return len(self.items)


def merge_work_items(
    projects: Iterable[ProjectWorkItem],
    services: Iterable[ServiceWorkItem],
) -> ActiveWork:
    """Concatenate projects then services and sort newest-first.

    ``sorted`` is stable (also with ``reverse=True``), so on equal
    ``updated_at`` a project stays ahead of a service order.
    """
    project_items = list(projects)
    service_items = list(services)
    combined: list[WorkItem] = [*project_items, *service_items]
    return ActiveWork(
        items=sorted(combined, key=lambda item: item.updated_at, reverse=True),
        total_projects=len(project_items),
        total_services=len(service_items),
    )
