from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, Response, status

from ods.application.dto.requests import (
    CreateOrderRequest,
    UpdateOrderRequest,
    UpdateOrderStatusRequest,
)
from ods.application.dto.responses import OrderListResponse, OrderResponse
from ods.application.mappers.order_mapper import (
    to_order_draft,
    to_order_replacement,
    to_order_response,
)
from ods.application.ports.repositories import OrderFilter
from ods.application.use_cases.context import ProcessingContext, Submitter
from ods.application.use_cases.order_lifecycle import OrderLifecycleCoordinator
from ods.domain.common.ids import OrderId, RestaurantId, RiderId, UserId
from ods.infrastructure.config import get_settings
from ods.infrastructure.container import build_order_coordinator
from ods.infrastructure.observability.otel import current_trace_id
from ods.infrastructure.observability.request_context import get_request_id

router = APIRouter()

# Set by the authenticating gateway in front of this service.
UserIdHeader = Annotated[int, Header(alias="X-User-Id")]
LatitudeHeader = Annotated[float, Header(alias="X-Delivery-Latitude")]
LongitudeHeader = Annotated[float, Header(alias="X-Delivery-Longitude")]


def _coordinator() -> OrderLifecycleCoordinator:
    return build_order_coordinator()


def _command_context() -> ProcessingContext:
    return ProcessingContext.start(
        timeout_seconds=get_settings().command_timeout_seconds,
        trace_id=current_trace_id(),
        request_id=get_request_id(),
    )


@router.post("/v1/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    request_dto: CreateOrderRequest,
    user_id: UserIdHeader,
    latitude: LatitudeHeader,
    longitude: LongitudeHeader,
) -> OrderResponse:
    order = _coordinator().create_order(
        draft=to_order_draft(request_dto),
        submitter=Submitter(user_id=UserId(user_id), latitude=latitude, longitude=longitude),
        ctx=_command_context(),
    )
    return to_order_response(order)


@router.get("/v1/orders", response_model=OrderListResponse)
def list_orders(
    user_id: int | None = None,
    rider_id: int | None = None,
    restaurant_id: int | None = None,
) -> OrderListResponse:
    orders = _coordinator().list_orders(
        OrderFilter(
            user_id=UserId(user_id) if user_id is not None else None,
            rider_id=RiderId(rider_id) if rider_id is not None else None,
            restaurant_id=RestaurantId(restaurant_id) if restaurant_id is not None else None,
        )
    )
    return OrderListResponse(orders=[to_order_response(order) for order in orders])


@router.get("/v1/orders/{order_id}", response_model=OrderResponse)
def get_order(order_id: int) -> OrderResponse:
    return to_order_response(_coordinator().get_order(OrderId(order_id)))


@router.put("/v1/orders/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: int,
    request_dto: UpdateOrderRequest,
    user_id: UserIdHeader,
    latitude: LatitudeHeader,
    longitude: LongitudeHeader,
) -> OrderResponse:
    order = _coordinator().update_order(
        order=to_order_replacement(OrderId(order_id), request_dto),
        submitter=Submitter(user_id=UserId(user_id), latitude=latitude, longitude=longitude),
        ctx=_command_context(),
    )
    return to_order_response(order)


@router.post(
    "/v1/orders/{order_id}/assign/{rider_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def assign_rider_to_order(order_id: int, rider_id: int) -> Response:
    _coordinator().assign_rider_to_order(
        order_id=OrderId(order_id),
        rider_id=RiderId(rider_id),
        ctx=_command_context(),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/v1/orders/{order_id}/status",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def update_order_status(order_id: int, request_dto: UpdateOrderStatusRequest) -> Response:
    _coordinator().update_order_status(
        order_id=OrderId(order_id),
        status=request_dto.status,
        ctx=_command_context(),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
