from __future__ import annotations

from fastapi import APIRouter, Response, status

from ods.infrastructure.db.session import ping_database
from ods.infrastructure.messaging.redis_client import ping_redis

router = APIRouter()

READINESS_TIMEOUT_SECONDS = 1.0


@router.get("/health/live")
def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready")
def ready(response: Response) -> dict[str, object]:
    # The rider directory is not probed; dispatch failures surface per event.
    checks = {
        "database": ping_database(timeout_seconds=READINESS_TIMEOUT_SECONDS),
        "event_bus": ping_redis(timeout_seconds=READINESS_TIMEOUT_SECONDS),
    }
    if all(checks.values()):
        return {"status": "ok", "checks": checks}

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "unavailable", "checks": checks}
