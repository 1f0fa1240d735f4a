from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class OrderItemResponse(BaseModel):
    itemId: int | None = None
    orderId: int | None = None
    menuItemId: int
    quantity: int


class OrderResponse(BaseModel):
    orderId: int
    userId: int | None = None
    restaurantId: int | None = None
    itemId: int | None = None
    riderId: int | None = None
    instructions: str
    status: str
    pickupLocation: str
    deliveryLocation: str
    createdAt: datetime | None = None
    deliveryTime: datetime | None = None
    items: list[OrderItemResponse] = Field(default_factory=list)


class OrderListResponse(BaseModel):
    orders: list[OrderResponse] = Field(default_factory=list)
