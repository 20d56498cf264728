"""JSON log lines tagged with the request's correlation id and caller."""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO, Any

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")
REQUEST_USER_CTX: ContextVar[str] = ContextVar("request_user_id", default="")

_EXTRA_FIELDS = (
    "user_id",
    "email",
    "action",
    "resource",
    "path",
    "method",
    "status_code",
    "error_code",
    "duration_ms",
)

# pymongo logs every heartbeat and command at DEBUG.
_NOISY_LOGGERS = ("pymongo", "pymongo.command", "pymongo.topology", "pymongo.connection")


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": CORRELATION_ID_CTX.get(),
        }
        request_user = REQUEST_USER_CTX.get()
        if request_user:
            payload["request_user_id"] = request_user

        payload.update(
            (key, value)
            for key in _EXTRA_FIELDS
            if (value := getattr(record, key, None)) not in (None, "")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", *, stream: IO[str] | None = None) -> None:
    """Route the root logger through a single JSON handler."""
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(resolved)
    root_logger.addHandler(handler)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))


def set_correlation_id(correlation_id: str) -> None:
    CORRELATION_ID_CTX.set(correlation_id)


def set_request_user(user_id: str) -> None:
    """Tag log lines emitted for the rest of this request with the caller's id."""
    REQUEST_USER_CTX.set(user_id)
