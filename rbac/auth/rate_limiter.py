"""Sliding-window rate limiting for unauthenticated auth endpoints."""

from __future__ import annotations

import math
import sqlite3
import time
from collections import deque
from pathlib import Path
from threading import Lock
from typing import Protocol

from rbac.api.errors import RateLimitExceededError
from rbac.core.migrations import apply_migrations


class RateLimitBackend(Protocol):
    """Storage for hit timestamps per bucket key."""

    def acquire(self, key: str, *, limit: int, window_seconds: int, now: float) -> int:
        """Record a hit and return 0, or the seconds to wait when the window is full."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryRateLimitBackend:
    """Process-local backend; stale buckets are swept periodically."""

    def __init__(self, *, cleanup_interval_seconds: int = 300) -> None:
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._cleanup_interval = max(1, int(cleanup_interval_seconds))
        self._last_cleanup = time.monotonic()
        self._max_window = 0

    def acquire(self, key: str, *, limit: int, window_seconds: int, now: float) -> int:
        with self._lock:
            self._max_window = max(self._max_window, window_seconds)
            self._maybe_cleanup(now)
            hits = self._hits.setdefault(key, deque())
            cutoff = now - window_seconds
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= limit:
                return max(1, math.ceil(hits[0] + window_seconds - now))
            hits.append(now)
            return 0

    def _maybe_cleanup(self, now: float) -> None:
        current = time.monotonic()
        if current - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = current
        cutoff = now - self._max_window
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def bucket_count(self) -> int:
        with self._lock:
            return len(self._hits)

    def close(self) -> None:
        with self._lock:
            self._hits.clear()


class SqliteRateLimitBackend:
    """SQLite backend shared by every worker process on a host."""

    def __init__(self, *, database_path: Path) -> None:
        apply_migrations(database_path)
        self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = Lock()

    def acquire(self, key: str, *, limit: int, window_seconds: int, now: float) -> int:
        with self._lock:
            self._connection.execute(
                "DELETE FROM rate_limit_hits WHERE bucket_key = ? AND hit_at <= ?",
                (key, now - window_seconds),
            )
            row = self._connection.execute(
                """
                SELECT COUNT(*) AS hits, MIN(hit_at) AS oldest
                FROM rate_limit_hits
                WHERE bucket_key = ?
                """,
                (key,),
            ).fetchone()
            if int(row["hits"] or 0) >= limit:
                self._connection.commit()
                return max(1, math.ceil(float(row["oldest"]) + window_seconds - now))
            self._connection.execute(
                "INSERT INTO rate_limit_hits(bucket_key, hit_at) VALUES (?, ?)",
                (key, now),
            )
            self._connection.commit()
            return 0

    def close(self) -> None:
        with self._lock:
            self._connection.close()


class RateLimiter:
    """Named policy (``limit`` hits per ``window_seconds``) over a backend."""

    def __init__(
        self,
        backend: RateLimitBackend,
        *,
        name: str,
        max_requests: int,
        window_seconds: int,
    ) -> None:
        self._backend = backend
        self._name = name
        self._max_requests = max(1, int(max_requests))
        self._window_seconds = max(1, int(window_seconds))

    def check(self, identifier: str, *, now: float | None = None) -> None:
        """Count one attempt for ``identifier``; raise 429 when over the limit."""
        key = f"{self._name}:{identifier.strip() or 'unknown'}"
        retry_after = self._backend.acquire(
            key,
            limit=self._max_requests,
            window_seconds=self._window_seconds,
            now=time.time() if now is None else now,
        )
        if retry_after:
            raise RateLimitExceededError(retry_after)


def build_rate_limit_backend(kind: str, *, sqlite_path: Path) -> RateLimitBackend:
    if kind == "sqlite":
        return SqliteRateLimitBackend(database_path=sqlite_path)
    if kind != "memory":
        raise ValueError(f"Unknown rate limit backend: {kind}")
    return InMemoryRateLimitBackend()
