from __future__ import annotations

from collections.abc import Mapping

import redis

from ods.application.ports.publisher import EventPublisher, PublishError
from ods.infrastructure.messaging.redis_client import get_redis_client

PAYLOAD_FIELD = "payload"
REQUEST_ID_FIELD = "request_id"


class RedisStreamEventPublisher(EventPublisher):
    """Appends each event to the Redis stream named after its topic."""

    def __init__(self, client: redis.Redis | None = None, timeout_seconds: float = 1.0) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    def publish(
        self,
        topic: str,
        message: str,
        metadata: Mapping[str, str] | None = None,
    ) -> None:
        fields = {PAYLOAD_FIELD: message}
        for key, value in (metadata or {}).items():
            if key != PAYLOAD_FIELD:
                fields[key] = value
        try:
            client = self._client or get_redis_client(timeout_seconds=self._timeout_seconds)
            client.xadd(topic, fields)
        except (redis.RedisError, RuntimeError) as exc:
            raise PublishError(f"failed to publish to {topic}") from exc
