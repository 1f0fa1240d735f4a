from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ods.application.errors import DeadlineExceededError
from ods.domain.common.ids import UserId

DEFAULT_BUDGET_SECONDS = 60.0


@dataclass(frozen=True)
class TraceContext:
    trace_id: str | None
    request_id: str | None


@dataclass(frozen=True)
class ProcessingContext:
    """Trace identifiers plus a monotonic deadline for one command or event."""

    trace: TraceContext
    deadline: float
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)

    @classmethod
    def start(
        cls,
        timeout_seconds: float = DEFAULT_BUDGET_SECONDS,
        trace_id: str | None = None,
        request_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> ProcessingContext:
        return cls(
            trace=TraceContext(trace_id=trace_id, request_id=request_id),
            deadline=clock() + timeout_seconds,
            clock=clock,
        )

    def remaining(self) -> float:
        return max(self.deadline - self.clock(), 0.0)

    def ensure_active(self, operation: str) -> None:
        if self.remaining() <= 0:
            raise DeadlineExceededError(f"deadline exceeded before {operation}")


@dataclass(frozen=True)
class Submitter:
    user_id: UserId
    latitude: float
    longitude: float
