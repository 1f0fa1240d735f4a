from __future__ import annotations

from typing import Any


class OrderServiceError(Exception):
    details: dict[str, Any] | None = None


class MissingParamError(OrderServiceError):
    def __init__(self, field: str) -> None:
        super().__init__(f"missing required field: {field}")
        self.field = field
        self.details = {"field": field}


class OrderValidationError(OrderServiceError):
    pass


class EntityNotFoundError(OrderServiceError):
    pass


class NoResponseError(EntityNotFoundError):
    pass


class InternalServerError(OrderServiceError):
    pass


class MalformedEventError(InternalServerError):
    pass


class DeadlineExceededError(InternalServerError):
    pass
