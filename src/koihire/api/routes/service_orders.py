"""Service order routes: buy a package and move the order to completion.

Routes:
    POST /api/service-orders                    — Place an order (PENDING)
    GET  /api/service-orders/{id}               — Read (participants only)
    POST /api/service-orders/{id}/accept        — PENDING -> ACCEPTED (freelancer)
    POST /api/service-orders/{id}/start         — ACCEPTED -> IN_PROGRESS (freelancer)
    POST /api/service-orders/{id}/deliver       — -> DELIVERED (freelancer)
    POST /api/service-orders/{id}/revision      — DELIVERED -> REVISION_REQUESTED (client)
    POST /api/service-orders/{id}/approve       — DELIVERED -> COMPLETED, releases a funded escrow
    POST /api/service-orders/{id}/cancel        — -> CANCELLED, refunds a funded escrow
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends

from koihire.api.deps import get_current_user, get_db_session, get_payment_service
from koihire.domain.auth import AuthContext
from koihire.schemas.common import ApiResponse
from koihire.schemas.service_orders import (
    CancelOrderRequest,
    PlaceOrderRequest,
    RevisionRequest,
    ServiceOrderResponse,
)
from koihire.services.payment_service import PaymentService
from koihire.services.service_order_service import ServiceOrderService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/service-orders", tags=["Service Orders"])


@router.post(
    "",
    response_model=ApiResponse[ServiceOrderResponse],
    status_code=201,
    summary="Order a service package",
)
async def place_order(
    body: PlaceOrderRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session).place_order(user, body.package_id)
    return ApiResponse(data=ServiceOrderResponse.model_validate(order))


@router.get(
    "/{order_id}",
    response_model=ApiResponse[ServiceOrderResponse],
    summary="Get a service order",
)
async def get_order(
    order_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session).get_order(order_id, user)
    return ApiResponse(data=ServiceOrderResponse.model_validate(order))


@router.post(
    "/{order_id}/accept",
    response_model=ApiResponse[ServiceOrderResponse],
    summary="Accept an order",
)
async def accept_order(
    order_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session).accept(order_id, user)
    return ApiResponse(data=ServiceOrderResponse.model_validate(order))


@router.post(
    "/{order_id}/start",
    response_model=ApiResponse[ServiceOrderResponse],
    summary="Start work on an accepted order",
)
async def start_order(
    order_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session).start(order_id, user)
    return ApiResponse(data=ServiceOrderResponse.model_validate(order))


@router.post(
    "/{order_id}/deliver",
    response_model=ApiResponse[ServiceOrderResponse],
    summary="Deliver the work",
)
async def deliver_order(
    order_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session).deliver(order_id, user)
    return ApiResponse(data=ServiceOrderResponse.model_validate(order), message="Order delivered")


@router.post(
    "/{order_id}/revision",
    response_model=ApiResponse[ServiceOrderResponse],
    summary="Request a revision of a delivery",
)
async def request_revision(
    order_id: uuid.UUID,
    body: RevisionRequest,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session).request_revision(order_id, user, body.note)
    return ApiResponse(data=ServiceOrderResponse.model_validate(order))


@router.post(
    "/{order_id}/approve",
    response_model=ApiResponse[ServiceOrderResponse],
    summary="Approve a delivery",
)
async def approve_order(
    order_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session, payments).approve(order_id, user)
    return ApiResponse(data=ServiceOrderResponse.model_validate(order), message="Order completed")


@router.post(
    "/{order_id}/cancel",
    response_model=ApiResponse[ServiceOrderResponse],
    summary="Cancel an order before work starts",
)
async def cancel_order(
    order_id: uuid.UUID,
    body: CancelOrderRequest | None = None,
    user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentService = Depends(get_payment_service),
) -> ApiResponse[ServiceOrderResponse]:
    order = await ServiceOrderService(session, payments).cancel(
        order_id, user, reason=body.reason if body else None
    )
    return ApiResponse(data=ServiceOrderResponse.model_validate(order), message="Order cancelled")
