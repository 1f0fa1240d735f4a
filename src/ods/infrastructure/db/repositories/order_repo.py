from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ods.application.ports.repositories import OrderFilter, OrderRepository, RepositoryError
from ods.domain.common.ids import (
    MenuItemId,
    OrderId,
    OrderItemId,
    RestaurantId,
    RiderId,
    UserId,
)
from ods.domain.order.entities import Order, OrderItem
from ods.infrastructure.db.models.order import OrderItemModel, OrderModel
from ods.infrastructure.db.session import get_engine


class SqlAlchemyOrderRepository(OrderRepository):
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine or get_engine()

    def create(self, order: Order) -> Order:
        order_model = self._to_model(order)
        try:
            # Order row and item rows commit together or not at all.
            with Session(self._engine) as session, session.begin():
                session.add(order_model)
                session.flush()
                created = self._to_domain(order_model)
        except SQLAlchemyError as exc:
            raise RepositoryError("order insert failed") from exc
        return created

    def get(self, order_id: OrderId) -> Order | None:
        statement = (
            select(OrderModel)
            .options(joinedload(OrderModel.items))
            .where(OrderModel.order_id == int(order_id))
            .limit(1)
        )
        try:
            with Session(self._engine) as session:
                model = session.execute(statement).unique().scalar_one_or_none()
                if model is None:
                    return None
                return self._to_domain(model)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"order {order_id} read failed") from exc

    def update(self, order: Order) -> bool:
        if order.order_id is None:
            raise ValueError("order_id is required for update")
        statement = (
            update(OrderModel)
            .where(OrderModel.order_id == int(order.order_id))
            .values(
                user_id=order.user_id,
                restaurant_id=order.restaurant_id,
                item_id=order.item_id,
                rider_id=order.rider_id,
                instructions=order.instructions,
                status=order.status,
                pickup_location=order.pickup_location,
                delivery_location=order.delivery_location,
                delivery_time=order.delivery_time,
            )
        )
        return self._execute_single_row_update(statement, f"order {order.order_id} update failed")

    def list_orders(self, order_filter: OrderFilter) -> list[Order]:
        statement = select(OrderModel).options(joinedload(OrderModel.items))
        if order_filter.user_id is not None:
            statement = statement.where(OrderModel.user_id == int(order_filter.user_id))
        if order_filter.rider_id is not None:
            statement = statement.where(OrderModel.rider_id == int(order_filter.rider_id))
        if order_filter.restaurant_id is not None:
            statement = statement.where(
                OrderModel.restaurant_id == int(order_filter.restaurant_id)
            )
        statement = statement.order_by(OrderModel.order_id)

        try:
            with Session(self._engine) as session:
                models = list(session.execute(statement).unique().scalars().all())
                return [self._to_domain(model) for model in models]
        except SQLAlchemyError as exc:
            raise RepositoryError("order list failed") from exc

    def assign_rider(self, order_id: OrderId, rider_id: RiderId) -> bool:
        statement = (
            update(OrderModel)
            .where(OrderModel.order_id == int(order_id))
            .values(rider_id=int(rider_id))
        )
        return self._execute_single_row_update(statement, f"order {order_id} rider update failed")

    def update_status(self, order_id: OrderId, status: str) -> bool:
        statement = (
            update(OrderModel).where(OrderModel.order_id == int(order_id)).values(status=status)
        )
        return self._execute_single_row_update(statement, f"order {order_id} status update failed")

    def _execute_single_row_update(self, statement, failure_message: str) -> bool:
        try:
            with Session(self._engine) as session:
                result = session.execute(statement)
                session.commit()
        except SQLAlchemyError as exc:
            raise RepositoryError(failure_message) from exc
        return result.rowcount == 1

    def _to_model(self, order: Order) -> OrderModel:
        order_model = OrderModel(
            user_id=order.user_id,
            restaurant_id=order.restaurant_id,
            item_id=order.item_id,
            rider_id=order.rider_id,
            instructions=order.instructions,
            status=order.status,
            pickup_location=order.pickup_location,
            delivery_location=order.delivery_location,
            delivery_time=order.delivery_time,
        )
        if order.created_at is not None:
            order_model.created_at = order.created_at
        order_model.items = [
            OrderItemModel(menu_item_id=item.menu_item_id, quantity=item.quantity)
            for item in order.items
        ]
        return order_model

    def _to_domain(self, model: OrderModel) -> Order:
        return Order(
            order_id=OrderId(model.order_id),
            user_id=UserId(model.user_id) if model.user_id is not None else None,
            restaurant_id=RestaurantId(model.restaurant_id),
            item_id=MenuItemId(model.item_id),
            rider_id=RiderId(model.rider_id) if model.rider_id is not None else None,
            instructions=model.instructions or "",
            status=model.status,
            pickup_location=model.pickup_location,
            delivery_location=model.delivery_location or "",
            created_at=_as_utc(model.created_at),
            delivery_time=_as_utc(model.delivery_time),
            items=[
                OrderItem(
                    item_id=OrderItemId(item.item_id),
                    order_id=OrderId(item.order_id),
                    menu_item_id=MenuItemId(item.menu_item_id),
                    quantity=item.quantity,
                )
                for item in model.items
            ],
        )


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
