from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


class NotFoundError(ApiError):
    """Entity is absent, or belongs to another merchant. Both look the same."""

    def __init__(self, entity: str):
        super().__init__(404, "NOT_FOUND", f"{entity} not found")
        self.entity = entity


class ConfigurationError(ApiError):
    def __init__(self, message: str):
        super().__init__(500, "CONFIGURATION_ERROR", message)


class RuleValidationError(ValueError):
    """Raised when a temporal rule is constructed with invalid bounds."""


class ConcurrencyConflict(ApiError):
    def __init__(self, message: str = "Concurrent write detected, retry the request."):
        super().__init__(409, "CONCURRENCY_CONFLICT", message)


class CapacityExceededError(ApiError):
    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(409, "CAPACITY_EXCEEDED", message, details=details)


class InvalidStateError(ApiError):
    def __init__(self, message: str):
        super().__init__(409, "INVALID_STATE", message)


class ShiftConflictError(ApiError):
    def __init__(self, conflicts: list[dict[str, Any]]):
        super().__init__(
            409,
            "SHIFT_CONFLICT",
            f"Shift assignment rejected with {len(conflicts)} conflict(s).",
            details={"conflicts": conflicts},
        )
        self.conflicts = conflicts


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(request),
    }
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})
