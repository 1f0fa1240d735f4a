from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

TOPIC_ORDER_PLACED = "order-placed"
TOPIC_ORDER_STATUS_UPDATED = "order-status-updated"


class PublishError(Exception):
    pass


class EventPublisher(Protocol):
    def publish(
        self,
        topic: str,
        message: str,
        metadata: Mapping[str, str] | None = None,
    ) -> None: ...
