from __future__ import annotations

import asyncio
import logging

from ods.infrastructure.container import start_order_event_consumer
from ods.infrastructure.observability.logging_config import configure_logging
from ods.infrastructure.observability.otel import configure_tracing

logger = logging.getLogger("ods.worker")


def main() -> int:
    configure_logging()
    configure_tracing()
    try:
        asyncio.run(start_order_event_consumer())
    except KeyboardInterrupt:
        logger.info("worker_stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
