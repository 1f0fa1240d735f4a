from __future__ import annotations

from typing import NewType

OrderId = NewType("OrderId", int)
OrderItemId = NewType("OrderItemId", int)
UserId = NewType("UserId", int)
RestaurantId = NewType("RestaurantId", int)
MenuItemId = NewType("MenuItemId", int)
RiderId = NewType("RiderId", int)
