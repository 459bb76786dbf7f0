"""
Tests for fixed-window rate limiting
"""
from datetime import datetime, timedelta, timezone

import pytest

from tavlo.core.config import RateLimitWindow
from tavlo.models import RateLimit
from tavlo.services.rate_limiter import RateLimiter, window_start

NOW = datetime(2025, 3, 10, 12, 30, 30, tzinfo=timezone.utc)


def test_window_start_alignment():
    assert window_start("minute", NOW) == datetime(2025, 3, 10, 12, 30, tzinfo=timezone.utc)
    assert window_start("hour", NOW) == datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
    assert window_start("day", NOW) == datetime(2025, 3, 10, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        window_start("week", NOW)


def test_limit_is_enforced_within_window(db):
    limiter = RateLimiter(db)
    limits = [RateLimitWindow(window="minute", limit=2)]

    first = limiter.check("items:create:u1", limits, now=NOW)
    second = limiter.check("items:create:u1", limits, now=NOW)
    third = limiter.check("items:create:u1", limits, now=NOW)

    assert first.success and first.remaining == 1
    assert second.success and second.remaining == 0
    assert not third.success
    assert third.retry_after == 30
    assert third.window == "minute"
    # Rejected requests are not counted
    assert db.query(RateLimit).one().count == 2


def test_new_window_resets_count(db):
    limiter = RateLimiter(db)
    limits = [RateLimitWindow(window="minute", limit=1)]

    assert limiter.check("k", limits, now=NOW).success
    assert not limiter.check("k", limits, now=NOW).success
    assert limiter.check("k", limits, now=NOW + timedelta(minutes=1)).success


def test_identifiers_are_independent(db):
    limiter = RateLimiter(db)
    limits = [RateLimitWindow(window="minute", limit=1)]

    assert limiter.check("a", limits, now=NOW).success
    assert limiter.check("b", limits, now=NOW).success


def test_tightest_window_reported(db):
    limiter = RateLimiter(db)
    limits = [
        RateLimitWindow(window="minute", limit=10),
        RateLimitWindow(window="day", limit=3),
    ]

    result = limiter.check("k", limits, now=NOW)

    assert result.success
    assert result.window == "day"
    assert result.remaining == 2


def test_cleanup_expired(db):
    limiter = RateLimiter(db)
    limits = [RateLimitWindow(window="minute", limit=5)]
    limiter.check("old", limits, now=NOW - timedelta(days=3))
    limiter.check("new", limits, now=NOW)

    assert limiter.cleanup_expired(now=NOW) == 1
    assert [r.identifier for r in db.query(RateLimit).all()] == ["new"]
