from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class OrderPlacedMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    order_id: int
    restaurant_id: int
    menu_id: int
    status: str


class OrderStatusUpdateMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    order_id: int
    restaurant_id: int = 0
    status: str
    item_id: int = 0
    lat: float = 0.0
    long: float = 0.0
