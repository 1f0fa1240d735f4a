from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )


class OrderItemRequest(CamelBaseModel):
    menu_item_id: int
    quantity: int


class CreateOrderRequest(CamelBaseModel):
    restaurant_id: int | None = None
    item_id: int | None = None
    instructions: str = ""
    pickup_location: str = ""
    delivery_time: datetime | None = None
    items: list[OrderItemRequest] = Field(default_factory=list)


class UpdateOrderRequest(CreateOrderRequest):
    rider_id: int | None = None
    status: str = ""


class UpdateOrderStatusRequest(CamelBaseModel):
    status: str = Field(min_length=1)
