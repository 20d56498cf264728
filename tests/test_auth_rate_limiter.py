from __future__ import annotations

from pathlib import Path

import pytest

from rbac.api.errors import RateLimitExceededError
from rbac.auth.rate_limiter import (
    InMemoryRateLimitBackend,
    RateLimiter,
    SqliteRateLimitBackend,
    build_rate_limit_backend,
)


def test_memory_rate_limiter_blocks_after_threshold() -> None:
    limiter = RateLimiter(
        InMemoryRateLimitBackend(), name="login", max_requests=2, window_seconds=60
    )

    limiter.check("127.0.0.1", now=1000.0)
    limiter.check("127.0.0.1", now=1010.0)
    with pytest.raises(RateLimitExceededError) as exc:
        limiter.check("127.0.0.1", now=1020.0)

    assert exc.value.status_code == 429
    assert exc.value.retry_after == 40
    assert "RATE_LIMIT_EXCEEDED" in str(exc.value.detail)


def test_memory_rate_limiter_frees_window_after_expiry() -> None:
    limiter = RateLimiter(
        InMemoryRateLimitBackend(), name="login", max_requests=1, window_seconds=60
    )

    limiter.check("10.0.0.1", now=1000.0)
    limiter.check("10.0.0.1", now=1061.0)


def test_memory_rate_limiter_tracks_identifiers_separately() -> None:
    backend = InMemoryRateLimitBackend()
    login = RateLimiter(backend, name="login", max_requests=1, window_seconds=60)
    register = RateLimiter(backend, name="register", max_requests=1, window_seconds=60)

    login.check("10.0.0.1", now=1000.0)
    login.check("10.0.0.2", now=1000.0)
    register.check("10.0.0.1", now=1000.0)

    assert backend.bucket_count() == 3


def test_sqlite_rate_limiter_blocks_after_threshold(tmp_path: Path) -> None:
    backend = SqliteRateLimitBackend(database_path=tmp_path / "rate_limit.db")
    limiter = RateLimiter(backend, name="register", max_requests=2, window_seconds=3600)

    limiter.check("127.0.0.1", now=1000.0)
    limiter.check("127.0.0.1", now=1001.0)
    with pytest.raises(RateLimitExceededError) as exc:
        limiter.check("127.0.0.1", now=1002.0)
    limiter.check("127.0.0.1", now=4601.0)
    backend.close()

    assert exc.value.retry_after == 3598


def test_sqlite_rate_limiter_survives_reopen(tmp_path: Path) -> None:
    db_path = tmp_path / "rate_limit.db"
    first = SqliteRateLimitBackend(database_path=db_path)
    RateLimiter(first, name="login", max_requests=1, window_seconds=60).check(
        "127.0.0.1", now=1000.0
    )
    first.close()

    second = SqliteRateLimitBackend(database_path=db_path)
    limiter = RateLimiter(second, name="login", max_requests=1, window_seconds=60)
    with pytest.raises(RateLimitExceededError):
        limiter.check("127.0.0.1", now=1030.0)
    second.close()


def test_build_rate_limit_backend_rejects_unknown_kind(tmp_path: Path) -> None:
    assert isinstance(
        build_rate_limit_backend("memory", sqlite_path=tmp_path / "x.db"),
        InMemoryRateLimitBackend,
    )
    with pytest.raises(ValueError):
        build_rate_limit_backend("redis", sqlite_path=tmp_path / "x.db")
