"""Project Service — posting a project and hiring a freelancer onto it.

Only the transitions the payment lifecycle depends on live here: hire
(OPEN -> IN_PROGRESS), submission for review, pause and resume. Completion,
cancellation and dispute outcomes are driven by EscrowService.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from koihire.domain.enums import (
    NotificationPriority,
    NotificationType,
    ProjectStatus,
    UserRole,
)
from koihire.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from koihire.domain.pricing import compute_charge_breakdown
from koihire.domain.state_machine import ProjectStateMachine, guarded_transition
from koihire.infrastructure.database.orm_models import Project
from koihire.infrastructure.database.repositories import ProjectRepository, UserRepository
from koihire.logging_config import get_logger
from koihire.services.notification_service import NotificationService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from koihire.domain.auth import AuthContext

logger = get_logger(__name__)


def _to_amount(value: object, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as err:
        raise ValidationError(f"{field} must be a number", field=field) from err
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return amount


class ProjectService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._projects = ProjectRepository(session)
        self._users = UserRepository(session)
        self._notifications = NotificationService(session)

    async def create_project(
        self,
        client: AuthContext,
        title: str,
        min_budget: object,
        max_budget: object,
        description: str | None = None,
        timeline: str | None = None,
    ) -> Project:
        if client.role == UserRole.FREELANCER:
            raise ForbiddenError("Only clients can post projects")
        if not title or not title.strip():
            raise ValidationError("Title is required", field="title")
        low = _to_amount(min_budget, "minBudget")
        high = _to_amount(max_budget, "maxBudget")
        if low > high:
            raise ValidationError("minBudget must not exceed maxBudget", field="minBudget")

        project = await self._projects.create(
            Project(
                client_id=client.user_id,
                title=title.strip(),
                description=description,
                timeline=timeline,
                min_budget=low,
                max_budget=high,
                status=ProjectStatus.OPEN.value,
            )
        )
        logger.info("project.created", project_id=str(project.id), client_id=str(client.user_id))
        return project

    async def get_project(self, project_id: uuid.UUID, viewer: AuthContext) -> Project:
        """Participants (and admins) only."""
        project = await self._projects.get_by_id(project_id)
        if project is None or (
            viewer.user_id not in (project.client_id, project.freelancer_id)
            and not viewer.is_admin
        ):
            raise NotFoundError("Project", str(project_id))
        return project

    async def hire_freelancer(
        self,
        project_id: uuid.UUID,
        client: AuthContext,
        freelancer_id: uuid.UUID,
        agreed_amount: object,
    ) -> Project:
        """Assign a freelancer at an agreed amount and start the project."""
        project = await self._get_client_project(project_id, client)
        agreed = _to_amount(agreed_amount, "agreedAmount")

        freelancer = await self._users.get_by_id(freelancer_id)
        if freelancer is None or freelancer.role != UserRole.FREELANCER:
            raise NotFoundError("Freelancer", str(freelancer_id))
        if freelancer.id == project.client_id:
            raise ValidationError("A client cannot hire themselves", field="freelancerId")

        guarded_transition(project.status, "freelancer_hired", ProjectStateMachine)

        breakdown = compute_charge_breakdown(agreed)
        project.freelancer_id = freelancer.id
        project.freelancer = freelancer
        project.agreed_amount = breakdown.agreed_amount
        project.buyer_fee = breakdown.buyer_fee
        project.total_charged = breakdown.total_charged
        await self._projects.update_status(project, ProjectStatus.IN_PROGRESS)

        await self._notifications.send(
            freelancer.id,
            NotificationType.APPLICATION_ACCEPTED,
            "You're Hired!",
            f'You have been hired for "{project.title}" at ${breakdown.agreed_amount}.',
            project_id=project.id,
        )
        logger.info(
            "project.freelancer_hired",
            project_id=str(project.id),
            freelancer_id=str(freelancer.id),
            agreed_amount=str(breakdown.agreed_amount),
        )
        return project

    async def submit_work(self, project_id: uuid.UUID, freelancer: AuthContext) -> Project:
        """The hired freelancer hands the work over for client review."""
        project = await self._projects.get_for_freelancer(project_id, freelancer.user_id)
        if project is None:
            raise NotFoundError("Project", str(project_id))

        guarded_transition(project.status, "work_submitted", ProjectStateMachine)
        await self._projects.update_status(project, ProjectStatus.PENDING_REVIEW)

        await self._notifications.send(
            project.client_id,
            NotificationType.SUBMISSION_RECEIVED,
            "Work Submitted",
            f'Work on "{project.title}" is ready for your review.',
            priority=NotificationPriority.HIGH,
            project_id=project.id,
        )
        logger.info("project.work_submitted", project_id=str(project.id))
        return project

    async def pause(self, project_id: uuid.UUID, client: AuthContext) -> Project:
        return await self._transition(project_id, client, "paused", ProjectStatus.PAUSED)

    async def resume(self, project_id: uuid.UUID, client: AuthContext) -> Project:
        return await self._transition(project_id, client, "resumed", ProjectStatus.IN_PROGRESS)

    async def _transition(
        self,
        project_id: uuid.UUID,
        client: AuthContext,
        event_name: str,
        new_status: ProjectStatus,
    ) -> Project:
        project = await self._get_client_project(project_id, client)
        guarded_transition(project.status, event_name, ProjectStateMachine)
        await self._projects.update_status(project, new_status)
        if project.freelancer_id:
            await self._notifications.send(
                project.freelancer_id,
                NotificationType.PROJECT_UPDATE,
                "Project Updated",
                f'"{project.title}" is now {new_status.value.replace("_", " ").lower()}.',
                project_id=project.id,
            )
        logger.info("project.status_changed", project_id=str(project.id), status=new_status.value)
        return project

    async def _get_client_project(self, project_id: uuid.UUID, client: AuthContext) -> Project:
        project = await self._projects.get_by_id(project_id)
        if project is None or project.client_id != client.user_id:
            raise NotFoundError("Project", str(project_id))
        return project
