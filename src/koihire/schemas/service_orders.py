"""Schemas for the service order endpoints."""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from pydantic import Field

from koihire.domain.enums import ServiceOrderStatus
from koihire.schemas.common import CamelModel


class PlaceOrderRequest(CamelModel):
    package_id: uuid.UUID = Field(..., description="Package to buy")


class RevisionRequest(CamelModel):
    note: str = Field(..., min_length=1, max_length=5000)


class CancelOrderRequest(CamelModel):
    reason: str | None = Field(default=None, max_length=1000)


class ServiceOrderResponse(CamelModel):
    id: uuid.UUID
    service_id: uuid.UUID
    package_id: uuid.UUID
    client_id: uuid.UUID
    freelancer_id: uuid.UUID
    status: ServiceOrderStatus
    package_price: Decimal
    revisions_used: int = 0
    delivery_date: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
