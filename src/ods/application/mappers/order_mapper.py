from __future__ import annotations

from ods.application.dto.requests import CreateOrderRequest, UpdateOrderRequest
from ods.application.dto.responses import OrderItemResponse, OrderResponse
from ods.domain.common.ids import MenuItemId, OrderId, RestaurantId, RiderId
from ods.domain.order.entities import Order, OrderItem


def to_order_draft(request_dto: CreateOrderRequest) -> Order:
    return Order(
        restaurant_id=RestaurantId(request_dto.restaurant_id) if request_dto.restaurant_id else None,
        item_id=MenuItemId(request_dto.item_id) if request_dto.item_id else None,
        instructions=request_dto.instructions,
        pickup_location=request_dto.pickup_location,
        delivery_time=request_dto.delivery_time,
        items=[
            OrderItem(menu_item_id=MenuItemId(item.menu_item_id), quantity=item.quantity)
            for item in request_dto.items
        ],
    )


def to_order_replacement(order_id: OrderId, request_dto: UpdateOrderRequest) -> Order:
    draft = to_order_draft(request_dto)
    return Order(
        order_id=order_id,
        restaurant_id=draft.restaurant_id,
        item_id=draft.item_id,
        rider_id=RiderId(request_dto.rider_id) if request_dto.rider_id else None,
        instructions=draft.instructions,
        status=request_dto.status,
        pickup_location=draft.pickup_location,
        delivery_time=draft.delivery_time,
        items=draft.items,
    )


def to_order_response(order: Order) -> OrderResponse:
    if order.order_id is None:
        raise ValueError("order has not been persisted")
    return OrderResponse(
        orderId=int(order.order_id),
        userId=order.user_id,
        restaurantId=order.restaurant_id,
        itemId=order.item_id,
        riderId=order.rider_id,
        instructions=order.instructions,
        status=order.status,
        pickupLocation=order.pickup_location,
        deliveryLocation=order.delivery_location,
        createdAt=order.created_at,
        deliveryTime=order.delivery_time,
        items=[
            OrderItemResponse(
                itemId=item.item_id,
                orderId=item.order_id,
                menuItemId=int(item.menu_item_id),
                quantity=item.quantity,
            )
            for item in order.items
        ],
    )
