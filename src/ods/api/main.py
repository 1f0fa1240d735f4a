from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ods.api.error_handling import register_exception_handlers
from ods.api.middleware.access_log import AccessLogMiddleware
from ods.api.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from ods.api.routes.health import router as health_router
from ods.api.routes.metrics import router as metrics_router
from ods.api.routes.orders import router as orders_router
from ods.infrastructure.config import get_settings
from ods.infrastructure.container import start_order_event_consumer
from ods.infrastructure.observability.logging_config import configure_logging
from ods.infrastructure.observability.otel import configure_otel

logger = logging.getLogger(__name__)


def _cors_allow_origins() -> list[str]:
    if os.getenv("APP_ENV", "dev").lower() in {"dev", "test"}:
        return ["*"]
    raw_value = os.getenv("CORS_ALLOW_ORIGINS", "")
    return [origin.strip() for origin in raw_value.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not get_settings().consume_events_in_api:
        logger.info("event_consumer_disabled", extra={"reason": "EVENT_CONSUMER_IN_API=false"})
        app.state.event_consumer_task = None
        yield
        return

    consumer_task = asyncio.create_task(start_order_event_consumer())
    app.state.event_consumer_task = consumer_task
    try:
        yield
    finally:
        consumer_task.cancel()
        with suppress(asyncio.CancelledError):
            await consumer_task


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Order Dispatch Service", version="0.1.0", lifespan=lifespan)
    register_exception_handlers(app)
    for router in (health_router, metrics_router, orders_router):
        app.include_router(router)

    # Outermost first: CORS, then request id, then access log.
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_allow_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    configure_otel(app)
    return app


app = create_app()
