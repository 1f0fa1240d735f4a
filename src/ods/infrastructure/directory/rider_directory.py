from __future__ import annotations

import logging
from functools import lru_cache

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from ods.application.ports.rider_directory import DirectoryError, RiderDirectory
from ods.application.use_cases.context import ProcessingContext
from ods.domain.common.ids import RiderId
from ods.domain.rider.entities import Availability, Location, RiderLocation

logger = logging.getLogger(__name__)


class _RiderLocationPayload(BaseModel):
    rider_id: int
    latitude: float
    longitude: float


_RIDER_LIST = TypeAdapter(list[_RiderLocationPayload])


@lru_cache(maxsize=8)
def get_http_client(base_url: str) -> httpx.Client:
    return httpx.Client(base_url=base_url, headers={"Accept": "application/json"})


class HttpRiderDirectoryClient(RiderDirectory):
    """Blocking client for the rider directory service. No retries."""

    def __init__(self, client: httpx.Client, timeout_seconds: float = 5.0) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius: int,
        ctx: ProcessingContext,
    ) -> list[RiderLocation]:
        response = self._send(
            "GET",
            "/riders/nearby",
            ctx,
            params={"latitude": f"{latitude:f}", "longitude": f"{longitude:f}", "radius": radius},
        )
        try:
            payload = _RIDER_LIST.validate_json(response.content)
        except ValidationError as exc:
            raise DirectoryError("failed to decode rider directory response") from exc
        return [
            RiderLocation(
                rider_id=RiderId(item.rider_id),
                location=Location(latitude=item.latitude, longitude=item.longitude),
            )
            for item in payload
        ]

    def set_availability(
        self,
        rider_id: RiderId,
        availability: Availability,
        ctx: ProcessingContext,
    ) -> None:
        self._send(
            "PUT",
            f"/rider/{int(rider_id)}/availability",
            ctx,
            json={"is_available": availability.is_available},
        )

    def _send(self, method: str, path: str, ctx: ProcessingContext, **kwargs) -> httpx.Response:
        ctx.ensure_active(f"{method} {path}")
        timeout = min(self._timeout_seconds, ctx.remaining())
        headers = {}
        if ctx.trace.request_id:
            headers["X-Request-Id"] = ctx.trace.request_id
        try:
            response = self._client.request(
                method,
                path,
                timeout=timeout,
                headers=headers,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "rider_directory_transport_error",
                extra={"method": method, "path": path},
            )
            raise DirectoryError(f"rider directory request failed: {method} {path}") from exc

        if not response.is_success:
            logger.warning(
                "rider_directory_unexpected_status",
                extra={"method": method, "path": path, "status_code": response.status_code},
            )
            raise DirectoryError(
                f"rider directory returned status {response.status_code} for {method} {path}"
            )
        return response
