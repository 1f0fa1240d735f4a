from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from ods.infrastructure.observability.otel import current_span_ids, service_name
from ods.infrastructure.observability.request_context import get_request_id

_LOGGING_CONFIGURED = False

# Third-party loggers that log every request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")

# Structured fields copied from ``extra=`` when present.
_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "order_id",
    "user_id",
    "restaurant_id",
    "rider_id",
    "status",
    "source",
    "topic",
    "topics",
    "group",
    "entry_id",
    "deliveries",
    "backoff_seconds",
    "reason",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, correlated by request id and trace id."""

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self._service = service or service_name()

    def format(self, record: logging.LogRecord) -> str:
        trace_id, span_id = current_span_ids()
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": get_request_id(),
            "trace_id": trace_id,
            "span_id": span_id,
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None) -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _LOGGING_CONFIGURED = True
