from __future__ import annotations

import logging
from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ods.application.errors import (
    EntityNotFoundError,
    InternalServerError,
    MissingParamError,
    OrderServiceError,
    OrderValidationError,
)
from ods.infrastructure.observability.request_context import get_request_id

logger = logging.getLogger(__name__)

# First match wins, so subclasses must come before their bases.
_SERVICE_ERRORS: tuple[tuple[type[OrderServiceError], int, str], ...] = (
    (MissingParamError, 400, "MISSING_PARAM"),
    (OrderValidationError, 400, "VALIDATION_ERROR"),
    (EntityNotFoundError, 404, "NOT_FOUND"),
    (InternalServerError, 500, "INTERNAL_ERROR"),
)

_HTTP_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            },
            "requestId": get_request_id(),
        },
    )


def _classify(exc: OrderServiceError) -> tuple[int, str]:
    for exc_cls, status_code, code in _SERVICE_ERRORS:
        if isinstance(exc, exc_cls):
            return status_code, code
    return 500, "INTERNAL_ERROR"


async def _service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    service_exc = cast(OrderServiceError, exc)
    status_code, code = _classify(service_exc)
    if status_code >= 500:
        # Causes stay in the log; the body is opaque.
        logger.error(
            "request_failed_internal",
            extra={"method": request.method, "path": request.url.path},
            exc_info=exc,
        )
        return _error_response(
            status_code=status_code,
            code=code,
            message="internal server error",
        )
    return _error_response(
        status_code=status_code,
        code=code,
        message=str(service_exc),
        details=service_exc.details,
    )


async def _http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    return _error_response(
        status_code=http_exc.status_code,
        code=_HTTP_CODES.get(http_exc.status_code, "HTTP_ERROR"),
        message=str(http_exc.detail) if http_exc.detail else "request failed",
    )


async def _validation_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    return _error_response(
        status_code=400,
        code="INVALID_REQUEST",
        message="request validation failed",
        details={"errors": jsonable_encoder(validation_exc.errors())},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderServiceError, _service_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
