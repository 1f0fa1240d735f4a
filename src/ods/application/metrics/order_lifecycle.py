from __future__ import annotations

from prometheus_client import Counter

from ods.domain.order.entities import Order, parse_status

ORDERS_CREATED_TOTAL = Counter(
    "ods_orders_created_total",
    "Total number of orders persisted.",
    ["restaurant_id"],
)

ORDER_STATUS_UPDATES_TOTAL = Counter(
    "ods_order_status_updates_total",
    "Total number of order status updates by target status.",
    ["status", "source"],
)

RIDER_ASSIGNMENTS_TOTAL = Counter(
    "ods_rider_assignments_total",
    "Total number of rider assignment attempts by outcome.",
    ["outcome"],
)

RIDER_RELEASES_TOTAL = Counter(
    "ods_rider_releases_total",
    "Total number of riders marked available again after delivery.",
)

EVENTS_CONSUMED_TOTAL = Counter(
    "ods_events_consumed_total",
    "Total number of bus events consumed by topic and outcome.",
    ["topic", "outcome"],
)


def _status_label(status: str) -> str:
    known = parse_status(status)
    return known.value if known is not None else "other"


def record_order_created(order: Order) -> None:
    ORDERS_CREATED_TOTAL.labels(restaurant_id=str(order.restaurant_id)).inc()


def record_status_update(status: str, source: str) -> None:
    ORDER_STATUS_UPDATES_TOTAL.labels(status=_status_label(status), source=source).inc()


def record_rider_assignment(outcome: str) -> None:
    RIDER_ASSIGNMENTS_TOTAL.labels(outcome=outcome).inc()


def record_rider_release() -> None:
    RIDER_RELEASES_TOTAL.inc()


def record_event_consumed(topic: str, outcome: str) -> None:
    EVENTS_CONSUMED_TOTAL.labels(topic=topic, outcome=outcome).inc()
