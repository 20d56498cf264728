"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: ApiErrorCode,
        message: str,
        details: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail: dict[str, Any] = {"code": str(error_code), "message": message}
        if details is not None:
            detail["details"] = details
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.message = message
        self.details = details


class UnauthorizedError(ApiError):
    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(
            status_code=401, error_code=ApiErrorCode.UNAUTHORIZED, message=message
        )


class ForbiddenError(ApiError):
    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(
            status_code=403, error_code=ApiErrorCode.FORBIDDEN, message=message
        )


class NotFoundError(ApiError):
    def __init__(self, resource: str) -> None:
        super().__init__(
            status_code=404,
            error_code=ApiErrorCode.NOT_FOUND,
            message=f"{resource} not found",
        )


class ConflictError(ApiError):
    def __init__(self, message: str) -> None:
        super().__init__(
            status_code=409, error_code=ApiErrorCode.CONFLICT, message=message
        )


class ValidationFailedError(ApiError):
    def __init__(self, message: str = "Validation failed", details: Any = None) -> None:
        super().__init__(
            status_code=422,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
        )


class RateLimitExceededError(ApiError):
    """Too many attempts; carries the number of seconds until the window frees up."""

    def __init__(self, retry_after: int) -> None:
        retry_after = max(1, int(retry_after))
        super().__init__(
            status_code=429,
            error_code=ApiErrorCode.RATE_LIMIT_EXCEEDED,
            message=f"Too many requests. Try again in {retry_after} seconds",
            details={"retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )
        self.retry_after = retry_after


def to_error_payload(detail: Any, status_code: int) -> dict[str, Any]:
    """Normalize HTTP exception detail into the failure envelope."""
    if isinstance(detail, dict):
        error: dict[str, Any] = {
            "code": str(detail.get("code") or f"HTTP_{status_code}"),
            "message": str(detail.get("message") or detail.get("detail") or "HTTP error"),
        }
        if detail.get("details") is not None:
            error["details"] = detail["details"]
    else:
        error = {"code": f"HTTP_{status_code}", "message": str(detail or "HTTP error")}
    return {"success": False, "error": error}
