from __future__ import annotations

import json

import httpx
import pytest

from ods.application.errors import DeadlineExceededError
from ods.application.ports.rider_directory import DirectoryError
from ods.application.use_cases.context import ProcessingContext, TraceContext
from ods.domain.common.ids import RiderId
from ods.domain.rider.entities import Availability, Location, RiderLocation
from ods.infrastructure.directory.rider_directory import HttpRiderDirectoryClient

BASE_URL = "http://rider-directory.test"


def _client(handler, timeout_seconds: float = 5.0) -> HttpRiderDirectoryClient:
    http_client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpRiderDirectoryClient(http_client, timeout_seconds=timeout_seconds)


def _ctx(remaining: float = 60.0) -> ProcessingContext:
    return ProcessingContext(
        trace=TraceContext(trace_id=None, request_id="req-7"),
        deadline=100.0 + remaining,
        clock=lambda: 100.0,
    )


def test_find_nearby_queries_directory_and_decodes_riders() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {"rider_id": 11, "latitude": 12.97, "longitude": 77.59},
                {"rider_id": 12, "latitude": 12.98, "longitude": 77.6, "name": "sam"},
            ],
        )

    riders = _client(handler).find_nearby(12.9716, 77.5946, 3, _ctx())

    assert riders == [
        RiderLocation(rider_id=RiderId(11), location=Location(12.97, 77.59)),
        RiderLocation(rider_id=RiderId(12), location=Location(12.98, 77.6)),
    ]
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/riders/nearby"
    assert dict(request.url.params) == {
        "latitude": "12.971600",
        "longitude": "77.594600",
        "radius": "3",
    }
    assert request.headers["X-Request-Id"] == "req-7"


def test_find_nearby_returns_empty_list() -> None:
    client = _client(lambda request: httpx.Response(200, json=[]))

    assert client.find_nearby(1.0, 2.0, 3, _ctx()) == []


def test_find_nearby_non_success_status_is_directory_error() -> None:
    client = _client(lambda request: httpx.Response(503, json={"error": "down"}))

    with pytest.raises(DirectoryError, match="503"):
        client.find_nearby(1.0, 2.0, 3, _ctx())


def test_find_nearby_undecodable_body_is_directory_error() -> None:
    client = _client(lambda request: httpx.Response(200, content=b'{"rider_id": 1}'))

    with pytest.raises(DirectoryError, match="decode"):
        client.find_nearby(1.0, 2.0, 3, _ctx())


def test_transport_failure_is_directory_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DirectoryError):
        _client(handler).set_availability(RiderId(11), Availability(is_available=True), _ctx())


def test_set_availability_puts_flag_for_rider() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    _client(handler).set_availability(RiderId(11), Availability(is_available=False), _ctx())

    request = seen[0]
    assert request.method == "PUT"
    assert request.url.path == "/rider/11/availability"
    assert json.loads(request.content) == {"is_available": False}


def test_set_availability_non_success_status_is_directory_error() -> None:
    client = _client(lambda request: httpx.Response(404))

    with pytest.raises(DirectoryError):
        client.set_availability(RiderId(11), Availability(is_available=True), _ctx())


def test_request_timeout_is_capped_by_remaining_budget() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    _client(handler, timeout_seconds=5.0).find_nearby(1.0, 2.0, 3, _ctx(remaining=2.0))

    assert seen[0].extensions["timeout"]["read"] == 2.0


def test_expired_budget_skips_the_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    with pytest.raises(DeadlineExceededError):
        _client(handler).find_nearby(1.0, 2.0, 3, _ctx(remaining=0.0))

    assert seen == []
