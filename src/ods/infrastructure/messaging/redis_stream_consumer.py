from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from opentelemetry import trace
from redis import asyncio as redis_asyncio
from redis.exceptions import ResponseError

from ods.application.errors import MalformedEventError
from ods.application.metrics.order_lifecycle import record_event_consumed
from ods.infrastructure.messaging.redis_publisher import PAYLOAD_FIELD, REQUEST_ID_FIELD
from ods.infrastructure.observability.request_context import bind_request_id, reset_request_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EventHandler = Callable[[bytes], None]


@dataclass(frozen=True)
class StreamEntry:
    topic: str
    entry_id: str
    payload: bytes
    request_id: str | None = None


def _decode_value(value: bytes | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def _field(fields: Mapping[Any, Any], name: str) -> Any:
    return fields.get(name.encode("utf-8"), fields.get(name))


def _payload(fields: Mapping[Any, Any]) -> bytes:
    value = _field(fields, PAYLOAD_FIELD)
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


def _parse_entries(response: Any) -> list[StreamEntry]:
    entries: list[StreamEntry] = []
    for stream_name, stream_entries in response or []:
        topic = _decode_value(stream_name)
        if topic is None:
            continue
        for entry_id, fields in stream_entries:
            entry_id_value = _decode_value(entry_id)
            if entry_id_value is None:
                continue
            fields = fields or {}
            entries.append(
                StreamEntry(
                    topic=topic,
                    entry_id=entry_id_value,
                    payload=_payload(fields),
                    request_id=_decode_value(_field(fields, REQUEST_ID_FIELD)),
                )
            )
    return entries


class RedisStreamConsumer:
    """Sequential consumer over Redis Streams with a consumer group.

    Entries are acknowledged after the handler returns. A failing entry stays
    in the pending list and is read again before any new entry, until it has
    been delivered ``max_deliveries`` times; then it is logged and acknowledged.
    Malformed payloads are acknowledged straight away since a retry cannot
    succeed.
    """

    def __init__(
        self,
        client: redis_asyncio.Redis,
        handlers: Mapping[str, EventHandler],
        group: str,
        consumer_name: str,
        max_deliveries: int = 3,
        block_ms: int = 1000,
        retry_delay_seconds: float = 1.0,
    ) -> None:
        if not handlers:
            raise ValueError("at least one topic handler is required")
        self._client = client
        self._handlers = dict(handlers)
        self._group = group
        self._consumer_name = consumer_name
        self._max_deliveries = max_deliveries
        self._block_ms = block_ms
        self._retry_delay_seconds = retry_delay_seconds

    async def ensure_groups(self) -> None:
        for topic in self._handlers:
            try:
                await self._client.xgroup_create(
                    name=topic,
                    groupname=self._group,
                    id="$",
                    mkstream=True,
                )
            except ResponseError as exc:
                if "BUSYGROUP" not in str(exc):
                    raise

    async def poll_once(self) -> int:
        entries = await self._read(start_id="0", block=None)
        if not entries:
            entries = await self._read(start_id=">", block=self._block_ms)
        for entry in entries:
            await self._handle(entry)
        return len(entries)

    async def run(self) -> None:
        backoff_seconds = 1.0
        while True:
            try:
                await self.ensure_groups()
                logger.info(
                    "event_consumer_started",
                    extra={"topics": sorted(self._handlers), "group": self._group},
                )
                backoff_seconds = 1.0
                while True:
                    await self.poll_once()
            except asyncio.CancelledError:
                logger.info("event_consumer_cancelled")
                raise
            except Exception:
                logger.exception(
                    "event_consumer_error",
                    extra={"backoff_seconds": backoff_seconds},
                )
                await asyncio.sleep(backoff_seconds)
                backoff_seconds = min(backoff_seconds * 2, 5.0)

    async def aclose(self) -> None:
        client_aclose = getattr(self._client, "aclose", None)
        if callable(client_aclose):
            await client_aclose()
        else:
            await self._client.close()

    async def _read(self, start_id: str, block: int | None) -> list[StreamEntry]:
        response = await self._client.xreadgroup(
            groupname=self._group,
            consumername=self._consumer_name,
            streams={topic: start_id for topic in self._handlers},
            count=1,
            block=block,
        )
        return _parse_entries(response)

    async def _handle(self, entry: StreamEntry) -> None:
        token = bind_request_id(entry.request_id)
        try:
            with tracer.start_as_current_span(
                f"consume {entry.topic}",
                attributes={
                    "messaging.destination.name": entry.topic,
                    "messaging.message.id": entry.entry_id,
                },
            ):
                await self._dispatch(entry)
        finally:
            reset_request_id(token)

    async def _dispatch(self, entry: StreamEntry) -> None:
        handler = self._handlers[entry.topic]
        try:
            await asyncio.to_thread(handler, entry.payload)
        except MalformedEventError:
            record_event_consumed(entry.topic, "malformed")
            logger.warning(
                "event_dropped_malformed",
                extra={"topic": entry.topic, "entry_id": entry.entry_id},
            )
        except Exception:
            deliveries = await self._delivery_count(entry)
            if deliveries < self._max_deliveries:
                record_event_consumed(entry.topic, "retry")
                logger.warning(
                    "event_processing_failed",
                    extra={
                        "topic": entry.topic,
                        "entry_id": entry.entry_id,
                        "deliveries": deliveries,
                    },
                    exc_info=True,
                )
                await asyncio.sleep(self._retry_delay_seconds)
                return
            record_event_consumed(entry.topic, "dropped")
            logger.exception(
                "event_dropped_after_retries",
                extra={
                    "topic": entry.topic,
                    "entry_id": entry.entry_id,
                    "deliveries": deliveries,
                },
            )
        else:
            record_event_consumed(entry.topic, "processed")

        await self._client.xack(entry.topic, self._group, entry.entry_id)

    async def _delivery_count(self, entry: StreamEntry) -> int:
        pending = await self._client.xpending_range(
            name=entry.topic,
            groupname=self._group,
            min=entry.entry_id,
            max=entry.entry_id,
            count=1,
            consumername=self._consumer_name,
        )
        if not pending:
            return self._max_deliveries
        return int(pending[0]["times_delivered"])
