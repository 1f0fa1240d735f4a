from __future__ import annotations

from dataclasses import dataclass

from ods.domain.common.ids import MenuItemId, OrderId, RestaurantId


@dataclass(frozen=True)
class OrderPlacedEvent:
    order_id: OrderId
    restaurant_id: RestaurantId
    menu_id: MenuItemId
    status: str


@dataclass(frozen=True)
class OrderStatusUpdate:
    """Restaurant-side status fact; lat/long locate the restaurant for rider search."""

    order_id: OrderId
    restaurant_id: RestaurantId
    status: str
    item_id: MenuItemId
    lat: float
    long: float
