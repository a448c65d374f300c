"""Work Note Service — one private note per (freelancer, work item).

The item must be assigned to the caller before a note can be read or written;
items that do not exist and items owned by someone else both surface as
NotFoundError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from koihire.domain.exceptions import NotFoundError, ValidationError
from koihire.domain.work_items import ProjectRef, parse_item_ref
from koihire.infrastructure.database.repositories import (
    ProjectRepository,
    ServiceOrderRepository,
    WorkItemNoteRepository,
)
from koihire.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.domain.work_items import WorkItemRef
    from koihire.infrastructure.database.orm_models import WorkItemNote

logger = get_logger(__name__)


class WorkNoteService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._notes = WorkItemNoteRepository(session)
        self._projects = ProjectRepository(session)
        self._orders = ServiceOrderRepository(session)

    async def get_note(
        self, user_id: uuid.UUID, item_type: str, item_id: str
    ) -> WorkItemNote | None:
        ref = parse_item_ref(item_type, item_id)
        await self._assert_assigned(user_id, ref)
        return await self._notes.get(user_id, ref)

    async def set_note(
        self, user_id: uuid.UUID, item_type: str, item_id: str, text: object
    ) -> WorkItemNote:
        """Create or overwrite the caller's note on the item."""
        ref = parse_item_ref(item_type, item_id)
        if not isinstance(text, str) or not text:
            raise ValidationError("Note text is required", field="note")
        await self._assert_assigned(user_id, ref)

        note = await self._notes.upsert(user_id, ref, text)
        logger.info(
            "work_notes.saved",
            user_id=str(user_id),
            item_kind=ref.kind.value,
            item_id=str(ref.id),
        )
        return note

    async def delete_note(self, user_id: uuid.UUID, item_type: str, item_id: str) -> None:
        """Remove the caller's note. Deleting a missing note is not an error."""
        try:
            ref = parse_item_ref(item_type, item_id)
        except NotFoundError:
            # malformed id: no note can exist for it
            return
        removed = await self._notes.delete(user_id, ref)
        logger.info(
            "work_notes.deleted",
            user_id=str(user_id),
            item_kind=ref.kind.value,
            item_id=str(ref.id),
            removed=removed,
        )

    async def _assert_assigned(self, user_id: uuid.UUID, ref: WorkItemRef) -> None:
        if isinstance(ref, ProjectRef):
            if await self._projects.get_for_freelancer(ref.id, user_id) is None:
                raise NotFoundError("Project", str(ref.id))
        elif await self._orders.get_for_freelancer(ref.id, user_id) is None:
            raise NotFoundError("Service order", str(ref.id))
