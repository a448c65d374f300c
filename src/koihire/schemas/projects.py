"""Schemas for the project endpoints."""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from pydantic import Field

from koihire.domain.enums import ProjectStatus
from koihire.schemas.common import CamelModel


class CreateProjectRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200, examples=["Landing page redesign"])
    description: str | None = Field(default=None, max_length=10000)
    timeline: str | None = Field(default=None, max_length=100, examples=["2-4 weeks"])
    min_budget: Decimal = Field(..., gt=0, examples=[1000])
    max_budget: Decimal = Field(..., gt=0, examples=[2000])


class HireFreelancerRequest(CamelModel):
    freelancer_id: uuid.UUID
    agreed_amount: Decimal = Field(..., gt=0, examples=[1500])


class ProjectResponse(CamelModel):
    id: uuid.UUID
    client_id: uuid.UUID
    freelancer_id: uuid.UUID | None = None
    title: str
    description: str | None = None
    timeline: str | None = None
    status: ProjectStatus
    min_budget: Decimal
    max_budget: Decimal
    agreed_amount: Decimal | None = None
    buyer_fee: Decimal | None = None
    total_charged: Decimal | None = None
    created_at: datetime
    updated_at: datetime
