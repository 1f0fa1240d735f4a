from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace

import pytest

from ods.application.ports.publisher import PublishError
from ods.application.ports.repositories import OrderFilter, RepositoryError
from ods.application.ports.rider_directory import DirectoryError
from ods.application.use_cases.context import ProcessingContext
from ods.application.use_cases.order_lifecycle import OrderLifecycleCoordinator
from ods.domain.common.ids import OrderId, OrderItemId, RiderId
from ods.domain.order.entities import Order
from ods.domain.rider.entities import Availability, Location, RiderLocation


class FakeOrderRepository:
    def __init__(self) -> None:
        self.orders: dict[int, Order] = {}
        self.fail_create = False
        self.fail_assign = False
        self._next_order_id = 1
        self._next_item_id = 1

    def create(self, order: Order) -> Order:
        if self.fail_create:
            raise RepositoryError("order insert failed")
        order_id = OrderId(self._next_order_id)
        self._next_order_id += 1
        items = []
        for item in order.items:
            items.append(replace(item, item_id=OrderItemId(self._next_item_id), order_id=order_id))
            self._next_item_id += 1
        created = replace(order, order_id=order_id, items=items)
        self.orders[int(order_id)] = created
        return created

    def get(self, order_id) -> Order | None:
        return self.orders.get(int(order_id))

    def update(self, order: Order) -> bool:
        current = self.orders.get(int(order.order_id))
        if current is None:
            return False
        self.orders[int(order.order_id)] = replace(order, items=current.items)
        return True

    def list_orders(self, order_filter: OrderFilter) -> list[Order]:
        orders = sorted(self.orders.values(), key=lambda order: int(order.order_id))
        if order_filter.user_id is not None:
            orders = [order for order in orders if order.user_id == order_filter.user_id]
        if order_filter.rider_id is not None:
            orders = [order for order in orders if order.rider_id == order_filter.rider_id]
        if order_filter.restaurant_id is not None:
            orders = [
                order for order in orders if order.restaurant_id == order_filter.restaurant_id
            ]
        return orders

    def assign_rider(self, order_id, rider_id) -> bool:
        if self.fail_assign:
            raise RepositoryError("rider update failed")
        current = self.orders.get(int(order_id))
        if current is None:
            return False
        self.orders[int(order_id)] = replace(current, rider_id=rider_id)
        return True

    def update_status(self, order_id, status: str) -> bool:
        current = self.orders.get(int(order_id))
        if current is None:
            return False
        self.orders[int(order_id)] = replace(current, status=status)
        return True


@dataclass
class PublishCall:
    topic: str
    message: str
    metadata: dict[str, str]


class FakePublisher:
    def __init__(self) -> None:
        self.calls: list[PublishCall] = []
        self.fail = False

    def publish(
        self,
        topic: str,
        message: str,
        metadata: Mapping[str, str] | None = None,
    ) -> None:
        if self.fail:
            raise PublishError("bus unavailable")
        self.calls.append(PublishCall(topic=topic, message=message, metadata=dict(metadata or {})))


@dataclass
class FindCall:
    latitude: float
    longitude: float
    radius: int
    remaining: float


class FakeRiderDirectory:
    def __init__(self, rider_ids: list[int] | None = None) -> None:
        self.riders = [
            RiderLocation(rider_id=RiderId(rider_id), location=Location(12.97, 77.59))
            for rider_id in rider_ids or []
        ]
        self.find_calls: list[FindCall] = []
        self.availability_calls: list[tuple[int, bool]] = []
        self.fail_find = False
        self.fail_set = False

    def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius: int,
        ctx: ProcessingContext,
    ) -> list[RiderLocation]:
        self.find_calls.append(
            FindCall(
                latitude=latitude,
                longitude=longitude,
                radius=radius,
                remaining=ctx.remaining(),
            )
        )
        if self.fail_find:
            raise DirectoryError("directory unreachable")
        return list(self.riders)

    def set_availability(
        self,
        rider_id: RiderId,
        availability: Availability,
        ctx: ProcessingContext,
    ) -> None:
        if self.fail_set:
            raise DirectoryError("directory unreachable")
        self.availability_calls.append((int(rider_id), availability.is_available))


@pytest.fixture
def order_repository() -> FakeOrderRepository:
    return FakeOrderRepository()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def rider_directory() -> FakeRiderDirectory:
    return FakeRiderDirectory(rider_ids=[11, 12])


@pytest.fixture
def coordinator(
    order_repository: FakeOrderRepository,
    publisher: FakePublisher,
    rider_directory: FakeRiderDirectory,
) -> OrderLifecycleCoordinator:
    return OrderLifecycleCoordinator(
        order_repository=order_repository,
        publisher=publisher,
        rider_directory=rider_directory,
    )


@pytest.fixture
def ctx() -> ProcessingContext:
    return ProcessingContext.start(timeout_seconds=60.0, trace_id="trace-1", request_id="req-1")
