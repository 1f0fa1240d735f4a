from __future__ import annotations

import asyncio
import json

import pytest
from redis.exceptions import ResponseError

from ods.application.errors import MalformedEventError
from ods.application.use_cases.context import Submitter
from ods.application.use_cases.order_lifecycle import OrderLifecycleCoordinator
from ods.domain.common.ids import MenuItemId, RestaurantId, UserId
from ods.domain.order.entities import Order
from ods.infrastructure.messaging.redis_stream_consumer import RedisStreamConsumer
from ods.infrastructure.observability.request_context import get_request_id

TOPIC = "order-status-updated"
GROUP = "order-service"


class FakeStreamRedis:
    """Just enough of the consumer-group commands for one consumer."""

    def __init__(self) -> None:
        self.streams: dict[str, list[tuple[bytes, dict[bytes, bytes]]]] = {}
        self.groups: set[tuple[str, str]] = set()
        self.next_index: dict[str, int] = {}
        self.pending: dict[tuple[str, bytes], int] = {}
        self.acked: list[str] = []
        self.closed = False

    def add(self, stream: str, payload: bytes, **metadata: str) -> str:
        entries = self.streams.setdefault(stream, [])
        entry_id = f"{len(entries) + 1}-0".encode("utf-8")
        fields = {b"payload": payload}
        fields.update((key.encode("utf-8"), value.encode("utf-8")) for key, value in metadata.items())
        entries.append((entry_id, fields))
        return entry_id.decode("utf-8")

    async def xgroup_create(self, name, groupname, id="$", mkstream=False):
        if (name, groupname) in self.groups:
            raise ResponseError("BUSYGROUP Consumer Group name already exists")
        self.groups.add((name, groupname))
        entries = self.streams.setdefault(name, [])
        self.next_index[name] = len(entries) if id == "$" else 0
        return True

    async def xreadgroup(self, groupname, consumername, streams, count=None, block=None):
        response = []
        for stream, start_id in streams.items():
            entries = self.streams.get(stream, [])
            if start_id == ">":
                index = self.next_index.get(stream, 0)
                batch = entries[index : index + (count or len(entries))]
                self.next_index[stream] = index + len(batch)
            else:
                batch = [entry for entry in entries if (stream, entry[0]) in self.pending]
                batch = batch[: count or len(batch)]
            for entry_id, _ in batch:
                key = (stream, entry_id)
                self.pending[key] = self.pending.get(key, 0) + 1
            if batch or start_id != ">":
                response.append([stream.encode("utf-8"), batch])
        if not any(batch for _, batch in response):
            return None
        return response

    async def xack(self, name, groupname, *ids):
        acked = 0
        for entry_id in ids:
            if self.pending.pop((name, entry_id.encode("utf-8")), None) is not None:
                self.acked.append(entry_id)
                acked += 1
        return acked

    async def xpending_range(self, name, groupname, min, max, count, consumername=None):
        key = (name, min.encode("utf-8"))
        if key not in self.pending:
            return []
        return [
            {
                "message_id": key[1],
                "consumer": (consumername or "").encode("utf-8"),
                "time_since_delivered": 0,
                "times_delivered": self.pending[key],
            }
        ]

    async def aclose(self) -> None:
        self.closed = True


def _consumer(redis: FakeStreamRedis, handler, max_deliveries: int = 3) -> RedisStreamConsumer:
    return RedisStreamConsumer(
        client=redis,
        handlers={TOPIC: handler},
        group=GROUP,
        consumer_name="worker-1",
        max_deliveries=max_deliveries,
        block_ms=1,
        retry_delay_seconds=0,
    )


def _poll(consumer: RedisStreamConsumer, times: int) -> list[int]:
    async def run() -> list[int]:
        return [await consumer.poll_once() for _ in range(times)]

    return asyncio.run(run())


def test_consumer_requires_handlers() -> None:
    with pytest.raises(ValueError):
        RedisStreamConsumer(client=FakeStreamRedis(), handlers={}, group=GROUP, consumer_name="w")


def test_ensure_groups_tolerates_existing_group() -> None:
    redis = FakeStreamRedis()
    consumer = _consumer(redis, lambda payload: None)

    async def run() -> None:
        await consumer.ensure_groups()
        await consumer.ensure_groups()

    asyncio.run(run())

    assert redis.groups == {(TOPIC, GROUP)}


def test_processed_entry_is_acknowledged() -> None:
    redis = FakeStreamRedis()
    received: list[bytes] = []
    consumer = _consumer(redis, received.append)
    asyncio.run(consumer.ensure_groups())
    entry_id = redis.add(TOPIC, b'{"order_id": 1, "status": "accepted"}')

    assert _poll(consumer, 2) == [1, 0]
    assert received == [b'{"order_id": 1, "status": "accepted"}']
    assert redis.acked == [entry_id]
    assert redis.pending == {}


def test_malformed_entry_is_acknowledged_without_retry() -> None:
    redis = FakeStreamRedis()
    calls: list[bytes] = []

    def handler(payload: bytes) -> None:
        calls.append(payload)
        raise MalformedEventError("bad payload")

    consumer = _consumer(redis, handler)
    asyncio.run(consumer.ensure_groups())
    entry_id = redis.add(TOPIC, b"not json")

    _poll(consumer, 2)

    assert calls == [b"not json"]
    assert redis.acked == [entry_id]


def test_failing_entry_is_retried_before_new_entries_then_dropped() -> None:
    redis = FakeStreamRedis()
    calls: list[bytes] = []

    def handler(payload: bytes) -> None:
        calls.append(payload)
        if payload == b"first":
            raise RuntimeError("directory down")

    consumer = _consumer(redis, handler, max_deliveries=3)
    asyncio.run(consumer.ensure_groups())
    first = redis.add(TOPIC, b"first")
    second = redis.add(TOPIC, b"second")

    _poll(consumer, 4)

    assert calls == [b"first", b"first", b"first", b"second"]
    assert redis.acked == [first, second]
    assert redis.pending == {}


def test_handler_runs_with_publisher_request_id_bound() -> None:
    redis = FakeStreamRedis()
    seen: list[str | None] = []
    consumer = _consumer(redis, lambda payload: seen.append(get_request_id()))
    asyncio.run(consumer.ensure_groups())
    redis.add(TOPIC, b"{}", request_id="req-origin")
    redis.add(TOPIC, b"{}")

    _poll(consumer, 2)

    assert seen == ["req-origin", None]
    assert get_request_id() is None


def test_transient_failure_is_acknowledged_after_successful_retry() -> None:
    redis = FakeStreamRedis()
    attempts: list[bytes] = []

    def handler(payload: bytes) -> None:
        attempts.append(payload)
        if len(attempts) == 1:
            raise RuntimeError("timeout")

    consumer = _consumer(redis, handler)
    asyncio.run(consumer.ensure_groups())
    entry_id = redis.add(TOPIC, b"payload")

    _poll(consumer, 2)

    assert attempts == [b"payload", b"payload"]
    assert redis.acked == [entry_id]


def test_consumed_status_event_dispatches_rider(
    coordinator: OrderLifecycleCoordinator,
    order_repository,
    rider_directory,
    ctx,
) -> None:
    order = coordinator.create_order(
        Order(
            restaurant_id=RestaurantId(7),
            item_id=MenuItemId(42),
            instructions="no onions",
            pickup_location="R1",
        ),
        Submitter(user_id=UserId(5), latitude=1.0, longitude=2.0),
        ctx,
    )
    redis = FakeStreamRedis()
    consumer = _consumer(redis, coordinator.process_order_status_updated_event)
    asyncio.run(consumer.ensure_groups())
    entry_id = redis.add(
        TOPIC,
        json.dumps(
            {"order_id": order.order_id, "restaurant_id": 7, "status": "accepted", "lat": 1.0}
        ).encode("utf-8"),
    )

    _poll(consumer, 1)

    assert order_repository.orders[order.order_id].rider_id == 11
    assert rider_directory.availability_calls == [(11, False)]
    assert redis.acked == [entry_id]


def test_aclose_closes_client() -> None:
    redis = FakeStreamRedis()

    asyncio.run(_consumer(redis, lambda payload: None).aclose())

    assert redis.closed is True
