from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from ods.infrastructure.db.models.order import Base

DEFAULT_POOL_SIZE = 5


def database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set")
    return url


def _engine_options(url: str, connect_timeout: int) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    pool_size = int(os.getenv("DATABASE_POOL_SIZE") or DEFAULT_POOL_SIZE)
    return {
        "pool_pre_ping": True,
        "pool_size": pool_size,
        "connect_args": {"connect_timeout": connect_timeout},
    }


@lru_cache(maxsize=8)
def _build_engine(url: str, connect_timeout: int) -> Engine:
    return create_engine(url, **_engine_options(url, connect_timeout))


def get_engine(timeout_seconds: float = 1.0) -> Engine:
    return _build_engine(database_url(), max(1, int(timeout_seconds)))


def create_schema(engine: Engine | None = None) -> None:
    """Create missing order tables. For local runs and tests; deployed schemas are managed outside."""
    Base.metadata.create_all(engine or get_engine())


def ping_database(timeout_seconds: float = 1.0) -> bool:
    try:
        with get_engine(timeout_seconds).connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception:
        return False
    return True
