from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    rider_service_url: str
    rider_service_timeout_seconds: float
    command_timeout_seconds: float
    event_timeout_seconds: float
    rider_search_radius: int
    strict_status_transitions: bool
    consume_order_placed: bool
    consume_events_in_api: bool
    consumer_group: str
    consumer_name: str
    max_deliveries: int


def load_settings() -> Settings:
    return Settings(
        rider_service_url=os.getenv("RIDER_SERVICE_URL", "http://localhost:8080"),
        rider_service_timeout_seconds=_env_float("RIDER_SERVICE_TIMEOUT_SECONDS", 5.0),
        command_timeout_seconds=_env_float("ORDER_COMMAND_TIMEOUT_SECONDS", 60.0),
        event_timeout_seconds=_env_float("EVENT_PROCESSING_TIMEOUT_SECONDS", 60.0),
        rider_search_radius=_env_int("RIDER_SEARCH_RADIUS", 3),
        strict_status_transitions=_env_bool("STRICT_STATUS_TRANSITIONS", False),
        consume_order_placed=_env_bool("CONSUME_ORDER_PLACED", False),
        consume_events_in_api=_env_bool("EVENT_CONSUMER_IN_API", True),
        consumer_group=os.getenv("EVENT_CONSUMER_GROUP", "order-service"),
        consumer_name=os.getenv("EVENT_CONSUMER_NAME") or socket.gethostname(),
        max_deliveries=max(1, _env_int("EVENT_MAX_DELIVERIES", 3)),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
