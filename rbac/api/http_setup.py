"""Request middleware and exception handlers shared by every router."""

from __future__ import annotations

import time
import uuid
from typing import Any, Mapping

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rbac.api.errors import ApiErrorCode, to_error_payload
from rbac.core.config import AppConfig
from rbac.core.logging import set_correlation_id, set_request_user

SECURITY_HEADERS: Mapping[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


def _failure(
    status_code: int,
    code: ApiErrorCode,
    message: str,
    *,
    details: Any = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    detail: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        detail["details"] = details
    return JSONResponse(
        status_code=status_code,
        content=to_error_payload(detail, status_code),
        headers=dict(headers) if headers else None,
    )


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length") or 0)
    except ValueError:
        return 0


def _request_fields(request: Request, status_code: int) -> dict[str, Any]:
    return {"path": request.url.path, "method": request.method, "status_code": status_code}


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Body-size guard plus correlation id, security headers and access logging."""
    max_bytes = config.security.request_max_bytes

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        if _declared_length(request) > max_bytes:
            return _failure(
                413,
                ApiErrorCode.REQUEST_TOO_LARGE,
                f"Request size exceeds configured limit ({max_bytes} bytes).",
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        set_correlation_id(correlation_id)
        set_request_user("")
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        response.headers.update(SECURITY_HEADERS)
        fields = _request_fields(request, response.status_code)
        fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        logger.info("request_completed", extra=fields)
        return response


def register_exception_handlers(app: FastAPI, *, logger: Any) -> None:
    """Map every failure onto ``{success: false, error: {...}}``."""

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        fields = _request_fields(request, exc.status_code)
        fields["error_code"] = payload["error"]["code"]
        logger.warning("http_exception", extra=fields)
        return JSONResponse(
            status_code=exc.status_code,
            content=payload,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("validation_exception", extra=_request_fields(request, 422))
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in jsonable_encoder(exc.errors())
        ]
        return _failure(
            422, ApiErrorCode.VALIDATION_ERROR, "Validation failed", details=details
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unexpected_exception", extra=_request_fields(request, 500))
        return _failure(500, ApiErrorCode.INTERNAL_ERROR, "An unexpected error occurred")
