from __future__ import annotations

import json
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from ods.application.dto.events import OrderPlacedMessage, OrderStatusUpdateMessage
from ods.application.errors import MalformedEventError
from ods.domain.common.ids import MenuItemId, OrderId, RestaurantId
from ods.domain.order.entities import Order
from ods.domain.order.events import OrderPlacedEvent, OrderStatusUpdate


def to_order_placed_event(order: Order) -> OrderPlacedEvent:
    if order.order_id is None or order.restaurant_id is None or order.item_id is None:
        raise ValueError("order placed event requires a persisted, validated order")
    return OrderPlacedEvent(
        order_id=order.order_id,
        restaurant_id=order.restaurant_id,
        menu_id=order.item_id,
        status=order.status,
    )


def serialize_order_placed_event(event: OrderPlacedEvent) -> str:
    payload = {
        "order_id": int(event.order_id),
        "restaurant_id": int(event.restaurant_id),
        "menu_id": int(event.menu_id),
        "status": event.status,
    }
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


_MessageT = TypeVar("_MessageT", bound=BaseModel)


def _decode(raw: bytes | str, model: type[_MessageT]) -> _MessageT:
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedEventError(f"malformed {model.__name__}: {exc.error_count()} error(s)") from exc


def parse_order_placed_event(raw: bytes | str) -> OrderPlacedEvent:
    message = _decode(raw, OrderPlacedMessage)
    return OrderPlacedEvent(
        order_id=OrderId(message.order_id),
        restaurant_id=RestaurantId(message.restaurant_id),
        menu_id=MenuItemId(message.menu_id),
        status=message.status,
    )


def parse_order_status_update(raw: bytes | str) -> OrderStatusUpdate:
    message = _decode(raw, OrderStatusUpdateMessage)
    return OrderStatusUpdate(
        order_id=OrderId(message.order_id),
        restaurant_id=RestaurantId(message.restaurant_id),
        status=message.status,
        item_id=MenuItemId(message.item_id),
        lat=message.lat,
        long=message.long,
    )
