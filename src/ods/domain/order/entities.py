from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from ods.domain.common.ids import (
    MenuItemId,
    OrderId,
    OrderItemId,
    RestaurantId,
    RiderId,
    UserId,
)


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ASSIGNED = "assigned"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.CANCELLED}),
    OrderStatus.ACCEPTED: frozenset(
        {OrderStatus.ASSIGNED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.ASSIGNED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

REQUIRED_FIELDS = ("restaurant_id", "item_id", "instructions", "pickup_location")


class OrderTransitionError(Exception):
    pass


def parse_status(value: str) -> OrderStatus | None:
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def ensure_transition(current: str, target: str) -> None:
    """Check a status change against the transition table.

    Re-applying the current status is always legal so redelivered events stay
    harmless. A stored status outside the table (written before strict mode was
    enabled) only requires the target to be a known status.
    """
    target_status = parse_status(target)
    if target_status is None:
        raise OrderTransitionError(f"unknown order status={target}")
    if current == target:
        return
    current_status = parse_status(current)
    if current_status is None:
        return
    if target_status not in ALLOWED_TRANSITIONS[current_status]:
        raise OrderTransitionError(
            f"cannot move order from status={current_status.value} to status={target_status.value}"
        )


@dataclass(frozen=True)
class OrderItem:
    menu_item_id: MenuItemId
    quantity: int
    item_id: OrderItemId | None = None
    order_id: OrderId | None = None


@dataclass(frozen=True)
class Order:
    restaurant_id: RestaurantId | None
    item_id: MenuItemId | None
    instructions: str
    pickup_location: str
    status: str = OrderStatus.PENDING.value
    order_id: OrderId | None = None
    user_id: UserId | None = None
    rider_id: RiderId | None = None
    delivery_location: str = ""
    created_at: datetime | None = None
    delivery_time: datetime | None = None
    items: list[OrderItem] = field(default_factory=list)

    def missing_field(self) -> str | None:
        for name in REQUIRED_FIELDS:
            if not getattr(self, name):
                return name
        return None

    def place(self, user_id: UserId, delivery_location: str, now: datetime) -> Order:
        return replace(
            self,
            user_id=user_id,
            delivery_location=delivery_location,
            created_at=now,
            status=OrderStatus.PENDING.value,
        )


def format_delivery_location(latitude: float, longitude: float) -> str:
    return f"{latitude:f}, {longitude:f}"
