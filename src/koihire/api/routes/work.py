"""Freelancer work routes.

Routes:
    GET    /api/freelancer/active-work                — Unified active-work feed
    GET    /api/work-notes/{item_type}/{item_id}      — Read the caller's note
    POST   /api/work-notes/{item_type}/{item_id}      — Create or overwrite it
    DELETE /api/work-notes/{item_type}/{item_id}      — Remove it (idempotent)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Query

from koihire.api.deps import get_current_user, get_db_session
from koihire.domain.auth import AuthContext
from koihire.schemas.common import ApiResponse
from koihire.schemas.work import ActiveWorkResponse, SaveNoteRequest, WorkNoteResponse
from koihire.services.work_note_service import WorkNoteService
from koihire.services.work_service import WorkService, parse_filter

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

freelancer_router = APIRouter(prefix="/api/freelancer", tags=["Freelancer Work"])
notes_router = APIRouter(prefix="/api/work-notes", tags=["Work Notes"])


@freelancer_router.get(
    "/active-work",
    response_model=ApiResponse[ActiveWorkResponse],
    summary="List active projects and service orders",
)
async def get_active_work(
    work_type: str | None = Query(default=None, alias="type", description="all | projects | services"),
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ActiveWorkResponse]:
    """Projects first, then service orders, merged newest-first by updatedAt."""
    work = await WorkService(session).list_active_work(user.user_id, parse_filter(work_type))
    return ApiResponse(data=ActiveWorkResponse.from_active_work(work))


@notes_router.get(
    "/{item_type}/{item_id}",
    response_model=ApiResponse[WorkNoteResponse],
    summary="Get the caller's note on a work item",
)
async def get_note(
    item_type: str,
    item_id: str,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[WorkNoteResponse]:
    note = await WorkNoteService(session).get_note(user.user_id, item_type, item_id)
    return ApiResponse(data=WorkNoteResponse.model_validate(note) if note else None)


@notes_router.post(
    "/{item_type}/{item_id}",
    response_model=ApiResponse[WorkNoteResponse],
    summary="Create or update the caller's note on a work item",
)
async def save_note(
    item_type: str,
    item_id: str,
    body: SaveNoteRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[WorkNoteResponse]:
    note = await WorkNoteService(session).set_note(user.user_id, item_type, item_id, body.note)
    return ApiResponse(data=WorkNoteResponse.model_validate(note))


@notes_router.delete(
    "/{item_type}/{item_id}",
    response_model=ApiResponse[None],
    summary="Delete the caller's note on a work item",
)
async def delete_note(
    item_type: str,
    item_id: str,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await WorkNoteService(session).delete_note(user.user_id, item_type, item_id)
    return ApiResponse(message="Note deleted successfully")
