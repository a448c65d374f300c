"""Project routes: post a project, hire onto it, submit work, pause and resume.

Routes:
    POST /api/projects                      — Create (OPEN)
    GET  /api/projects/{id}                 — Read (participants only)
    POST /api/projects/{id}/hire            — OPEN -> IN_PROGRESS at an agreed amount
    POST /api/projects/{id}/submit          — IN_PROGRESS -> PENDING_REVIEW (hired freelancer)
    POST /api/projects/{id}/pause           — IN_PROGRESS -> PAUSED
    POST /api/projects/{id}/resume          — PAUSED -> IN_PROGRESS
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends

from koihire.api.deps import get_current_user, get_db_session
from koihire.domain.auth import AuthContext
from koihire.schemas.common import ApiResponse
from koihire.schemas.projects import CreateProjectRequest, HireFreelancerRequest, ProjectResponse
from koihire.services.project_service import ProjectService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/projects", tags=["Projects"])


@router.post(
    "",
    response_model=ApiResponse[ProjectResponse],
    status_code=201,
    summary="Post a new project",
)
async def create_project(
    body: CreateProjectRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(session).create_project(
        user,
        title=body.title,
        min_budget=body.min_budget,
        max_budget=body.max_budget,
        description=body.description,
        timeline=body.timeline,
    )
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.get(
    "/{project_id}",
    response_model=ApiResponse[ProjectResponse],
    summary="Get a project",
)
async def get_project(
    project_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(session).get_project(project_id, user)
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.post(
    "/{project_id}/hire",
    response_model=ApiResponse[ProjectResponse],
    summary="Hire a freelancer at an agreed amount",
)
async def hire_freelancer(
    project_id: uuid.UUID,
    body: HireFreelancerRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(session).hire_freelancer(
        project_id, user, body.freelancer_id, body.agreed_amount
    )
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.post(
    "/{project_id}/pause",
    response_model=ApiResponse[ProjectResponse],
    summary="Pause an in-progress project",
)
async def pause_project(
    project_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(session).pause(project_id, user)
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.post(
    "/{project_id}/resume",
    response_model=ApiResponse[ProjectResponse],
    summary="Resume a paused project",
)
async def resume_project(
    project_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(session).resume(project_id, user)
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.post(
    "/{project_id}/submit",
    response_model=ApiResponse[ProjectResponse],
    summary="Submit work for client review",
)
async def submit_work(
    project_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(session).submit_work(project_id, user)
    return ApiResponse(data=ProjectResponse.model_validate(project), message="Work submitted")
