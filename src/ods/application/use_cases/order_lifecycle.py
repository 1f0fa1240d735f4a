from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from ods.application.errors import (
    EntityNotFoundError,
    InternalServerError,
    MalformedEventError,
    MissingParamError,
    NoResponseError,
    OrderValidationError,
)
from ods.application.mappers.events import (
    parse_order_placed_event,
    parse_order_status_update,
    serialize_order_placed_event,
    to_order_placed_event,
)
from ods.application.metrics.order_lifecycle import (
    record_order_created,
    record_rider_assignment,
    record_rider_release,
    record_status_update,
)
from ods.application.ports.publisher import TOPIC_ORDER_PLACED, EventPublisher, PublishError
from ods.application.ports.repositories import OrderFilter, OrderRepository, RepositoryError
from ods.application.ports.rider_directory import DirectoryError, RiderDirectory
from ods.application.use_cases.context import ProcessingContext, Submitter
from ods.domain.common.ids import OrderId, RiderId
from ods.domain.order.entities import (
    Order,
    OrderStatus,
    OrderTransitionError,
    ensure_transition,
    format_delivery_location,
)
from ods.domain.order.events import OrderStatusUpdate
from ods.domain.rider.entities import Availability

logger = logging.getLogger(__name__)

RIDER_SEARCH_RADIUS = 3
EVENT_BUDGET_SECONDS = 60.0


class OrderLifecycleCoordinator:
    """Drives orders through their lifecycle from commands and bus events.

    Commands and consumed events share the status update path, so the
    ``delivered`` side effect (releasing the rider) fires no matter where the
    status came from. Rider dispatch on ``accepted`` only happens for events
    coming from the restaurant side, since only those carry its coordinates.

    Dispatch is three independent writes: store the status, store the rider,
    mark the rider busy. Nothing serializes concurrent dispatches, so two
    accepted events near the same rider may both pick it.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        publisher: EventPublisher,
        rider_directory: RiderDirectory,
        *,
        rider_search_radius: int = RIDER_SEARCH_RADIUS,
        event_timeout_seconds: float = EVENT_BUDGET_SECONDS,
        strict_status_transitions: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._order_repository = order_repository
        self._publisher = publisher
        self._rider_directory = rider_directory
        self._rider_search_radius = rider_search_radius
        self._event_timeout_seconds = event_timeout_seconds
        self._strict_status_transitions = strict_status_transitions
        self._clock = clock

    def create_order(self, draft: Order, submitter: Submitter, ctx: ProcessingContext) -> Order:
        missing = draft.missing_field()
        if missing is not None:
            raise MissingParamError(missing)

        order = draft.place(
            user_id=submitter.user_id,
            delivery_location=format_delivery_location(submitter.latitude, submitter.longitude),
            now=datetime.now(timezone.utc),
        )
        ctx.ensure_active("order insert")
        try:
            persisted = self._order_repository.create(order)
        except RepositoryError as exc:
            logger.exception(
                "order_create_failed",
                extra={"restaurant_id": order.restaurant_id, "user_id": order.user_id},
            )
            raise InternalServerError("failed to persist order") from exc

        record_order_created(persisted)
        logger.info(
            "order_created",
            extra={"order_id": persisted.order_id, "restaurant_id": persisted.restaurant_id},
        )

        # The order is durable at this point; a publish failure is still
        # reported to the caller but the order is not rolled back.
        self._publish_order_placed(persisted, ctx)
        return persisted

    def get_order(self, order_id: OrderId) -> Order:
        try:
            order = self._order_repository.get(order_id)
        except RepositoryError as exc:
            logger.exception("order_read_failed", extra={"order_id": order_id})
            raise InternalServerError("failed to read order") from exc
        if order is None:
            raise NoResponseError(f"order {order_id} not found")
        return order

    def update_order(self, order: Order, submitter: Submitter, ctx: ProcessingContext) -> Order:
        if order.order_id is None:
            raise MissingParamError("order_id")
        missing = order.missing_field()
        if missing is not None:
            raise MissingParamError(missing)
        current = self.get_order(order.order_id)
        status = order.status or current.status
        if self._strict_status_transitions:
            self._check_transition(current, status)

        replacement = replace(
            order,
            status=status,
            rider_id=order.rider_id if order.rider_id is not None else current.rider_id,
            user_id=submitter.user_id,
            delivery_location=format_delivery_location(submitter.latitude, submitter.longitude),
            created_at=current.created_at,
        )
        ctx.ensure_active("order update")
        try:
            updated = self._order_repository.update(replacement)
        except RepositoryError as exc:
            logger.exception("order_update_failed", extra={"order_id": order.order_id})
            raise InternalServerError("failed to update order") from exc
        if not updated:
            raise NoResponseError(f"order {order.order_id} not found")

        logger.info("order_updated", extra={"order_id": order.order_id, "status": status})
        return self.get_order(order.order_id)

    def list_orders(self, order_filter: OrderFilter) -> list[Order]:
        try:
            return self._order_repository.list_orders(order_filter)
        except RepositoryError as exc:
            logger.exception("order_list_failed")
            raise InternalServerError("failed to list orders") from exc

    def assign_rider_to_order(
        self,
        order_id: OrderId,
        rider_id: RiderId,
        ctx: ProcessingContext,
    ) -> None:
        ctx.ensure_active("rider assignment")
        self._store_rider(order_id, rider_id)
        logger.info("rider_assigned", extra={"order_id": order_id, "rider_id": rider_id})

    def update_order_status(
        self,
        order_id: OrderId,
        status: str,
        ctx: ProcessingContext,
        source: str = "command",
    ) -> None:
        if self._strict_status_transitions:
            self._check_transition(self.get_order(order_id), status)

        ctx.ensure_active("status update")
        try:
            updated = self._order_repository.update_status(order_id, status)
        except RepositoryError as exc:
            logger.exception(
                "order_status_update_failed",
                extra={"order_id": order_id, "status": status},
            )
            raise InternalServerError("failed to update order status") from exc
        if not updated:
            raise NoResponseError(f"order {order_id} not found")

        record_status_update(status, source=source)
        logger.info(
            "order_status_updated",
            extra={"order_id": order_id, "status": status, "source": source},
        )

        if status == OrderStatus.DELIVERED.value:
            self._release_rider(order_id, ctx)

    def process_order_status_updated_event(self, message: bytes | str) -> None:
        try:
            event = parse_order_status_update(message)
        except MalformedEventError:
            logger.exception("order_status_event_malformed")
            raise

        ctx = ProcessingContext.start(timeout_seconds=self._event_timeout_seconds, clock=self._clock)
        self.update_order_status(event.order_id, event.status, ctx, source="event")

        if event.status == OrderStatus.ACCEPTED.value:
            self._dispatch_rider(event, ctx)

        logger.info(
            "order_status_event_processed",
            extra={"order_id": event.order_id, "status": event.status},
        )

    def process_order_placed_event(self, message: bytes | str) -> None:
        try:
            event = parse_order_placed_event(message)
        except MalformedEventError:
            logger.exception("order_placed_event_malformed")
            raise

        ctx = ProcessingContext.start(timeout_seconds=self._event_timeout_seconds, clock=self._clock)
        self.update_order_status(event.order_id, event.status, ctx, source="event")

    def _dispatch_rider(self, event: OrderStatusUpdate, ctx: ProcessingContext) -> RiderId:
        current = self.get_order(event.order_id)
        if current.rider_id is not None:
            # Redelivered event; re-mark the stored rider busy instead of picking another.
            logger.info(
                "rider_already_assigned",
                extra={"order_id": event.order_id, "rider_id": current.rider_id},
            )
            self._mark_rider_busy(event.order_id, current.rider_id, ctx)
            record_rider_assignment("already_assigned")
            return current.rider_id

        try:
            riders = self._rider_directory.find_nearby(
                latitude=event.lat,
                longitude=event.long,
                radius=self._rider_search_radius,
                ctx=ctx,
            )
        except DirectoryError as exc:
            record_rider_assignment("directory_error")
            logger.exception("rider_search_failed", extra={"order_id": event.order_id})
            raise InternalServerError("rider directory lookup failed") from exc

        if not riders:
            record_rider_assignment("no_riders")
            logger.warning(
                "no_riders_available",
                extra={"order_id": event.order_id, "restaurant_id": event.restaurant_id},
            )
            raise EntityNotFoundError("no riders available near restaurant")

        # First entry wins; ordering is whatever the directory returned.
        rider_id = riders[0].rider_id
        self._store_rider(event.order_id, rider_id)
        self._mark_rider_busy(event.order_id, rider_id, ctx)

        record_rider_assignment("assigned")
        logger.info("rider_assigned", extra={"order_id": event.order_id, "rider_id": rider_id})
        return rider_id

    def _mark_rider_busy(
        self,
        order_id: OrderId,
        rider_id: RiderId,
        ctx: ProcessingContext,
    ) -> None:
        try:
            self._rider_directory.set_availability(rider_id, Availability(is_available=False), ctx)
        except (DirectoryError, InternalServerError) as exc:
            record_rider_assignment("incomplete")
            logger.exception(
                "rider_assignment_incomplete",
                extra={"order_id": order_id, "rider_id": rider_id},
            )
            raise InternalServerError("rider stored on order but availability update failed") from exc

    def _store_rider(self, order_id: OrderId, rider_id: RiderId) -> None:
        try:
            assigned = self._order_repository.assign_rider(order_id, rider_id)
        except RepositoryError as exc:
            logger.exception(
                "rider_store_failed",
                extra={"order_id": order_id, "rider_id": rider_id},
            )
            raise InternalServerError("failed to store rider on order") from exc
        if not assigned:
            raise NoResponseError(f"order {order_id} not found")

    def _release_rider(self, order_id: OrderId, ctx: ProcessingContext) -> None:
        order = self.get_order(order_id)
        if order.rider_id is None:
            logger.warning("delivered_order_without_rider", extra={"order_id": order_id})
            return

        try:
            self._rider_directory.set_availability(
                order.rider_id, Availability(is_available=True), ctx
            )
        except DirectoryError as exc:
            logger.exception(
                "rider_release_failed",
                extra={"order_id": order_id, "rider_id": order.rider_id},
            )
            raise InternalServerError("failed to mark rider available") from exc

        record_rider_release()
        logger.info("rider_released", extra={"order_id": order_id, "rider_id": order.rider_id})

    def _publish_order_placed(self, order: Order, ctx: ProcessingContext) -> None:
        message = serialize_order_placed_event(to_order_placed_event(order))
        metadata = {
            key: value
            for key, value in (
                ("request_id", ctx.trace.request_id),
                ("trace_id", ctx.trace.trace_id),
            )
            if value
        }
        try:
            self._publisher.publish(topic=TOPIC_ORDER_PLACED, message=message, metadata=metadata)
        except PublishError as exc:
            logger.exception("order_placed_publish_failed", extra={"order_id": order.order_id})
            raise InternalServerError("event bus publish error") from exc

    def _check_transition(self, current: Order, status: str) -> None:
        try:
            ensure_transition(current.status, status)
        except OrderTransitionError as exc:
            raise OrderValidationError(str(exc)) from exc
