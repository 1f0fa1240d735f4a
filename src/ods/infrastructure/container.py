from __future__ import annotations

import logging
import os

from ods.application.ports.publisher import TOPIC_ORDER_PLACED, TOPIC_ORDER_STATUS_UPDATED
from ods.application.use_cases.order_lifecycle import OrderLifecycleCoordinator
from ods.infrastructure.config import Settings, get_settings
from ods.infrastructure.db.repositories.order_repo import SqlAlchemyOrderRepository
from ods.infrastructure.directory.rider_directory import HttpRiderDirectoryClient, get_http_client
from ods.infrastructure.messaging.redis_client import build_async_redis_client
from ods.infrastructure.messaging.redis_publisher import RedisStreamEventPublisher
from ods.infrastructure.messaging.redis_stream_consumer import EventHandler, RedisStreamConsumer

logger = logging.getLogger(__name__)


def build_order_coordinator(settings: Settings | None = None) -> OrderLifecycleCoordinator:
    settings = settings or get_settings()
    return OrderLifecycleCoordinator(
        order_repository=SqlAlchemyOrderRepository(),
        publisher=RedisStreamEventPublisher(),
        rider_directory=HttpRiderDirectoryClient(
            client=get_http_client(settings.rider_service_url),
            timeout_seconds=settings.rider_service_timeout_seconds,
        ),
        rider_search_radius=settings.rider_search_radius,
        event_timeout_seconds=settings.event_timeout_seconds,
        strict_status_transitions=settings.strict_status_transitions,
    )


def build_event_handlers(
    coordinator: OrderLifecycleCoordinator,
    settings: Settings,
) -> dict[str, EventHandler]:
    handlers: dict[str, EventHandler] = {
        TOPIC_ORDER_STATUS_UPDATED: coordinator.process_order_status_updated_event,
    }
    if settings.consume_order_placed:
        handlers[TOPIC_ORDER_PLACED] = coordinator.process_order_placed_event
    return handlers


async def start_order_event_consumer(settings: Settings | None = None) -> None:
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        logger.warning("event_consumer_not_started", extra={"reason": "REDIS_URL missing"})
        return

    settings = settings or get_settings()
    coordinator = build_order_coordinator(settings)
    consumer = RedisStreamConsumer(
        client=build_async_redis_client(redis_url),
        handlers=build_event_handlers(coordinator, settings),
        group=settings.consumer_group,
        consumer_name=settings.consumer_name,
        max_deliveries=settings.max_deliveries,
    )
    try:
        await consumer.run()
    finally:
        await consumer.aclose()
