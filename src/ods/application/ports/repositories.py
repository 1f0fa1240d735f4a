from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ods.domain.common.ids import OrderId, RestaurantId, RiderId, UserId
from ods.domain.order.entities import Order


class RepositoryError(Exception):
    pass


@dataclass(frozen=True)
class OrderFilter:
    user_id: UserId | None = None
    rider_id: RiderId | None = None
    restaurant_id: RestaurantId | None = None


class OrderRepository(Protocol):
    def create(self, order: Order) -> Order:
        """Insert the order and its items atomically; returns the order with ids assigned."""
        ...

    def get(self, order_id: OrderId) -> Order | None: ...

    def update(self, order: Order) -> bool: ...

    def list_orders(self, order_filter: OrderFilter) -> list[Order]: ...

    def assign_rider(self, order_id: OrderId, rider_id: RiderId) -> bool: ...

    def update_status(self, order_id: OrderId, status: str) -> bool: ...
