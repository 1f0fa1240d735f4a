from __future__ import annotations

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ods.infrastructure.observability.request_context import bind_request_id, reset_request_id

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request: Request) -> str:
    # Oversized or blank ids from clients are replaced rather than rejected.
    value = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if value and len(value) <= MAX_REQUEST_ID_LENGTH:
        return value
    return uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Binds the caller's request id (or a fresh one) for logs, events and the error body."""

    async def dispatch(self, request: Request, call_next):
        request_id = _incoming_request_id(request)
        request.state.request_id = request_id
        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response
