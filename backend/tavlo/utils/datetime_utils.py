"""
Datetime utilities
Provides timezone-aware datetime helpers used by models and services
"""
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utc_now() -> datetime:
    """
    Get current UTC time (replacement for deprecated datetime.utcnow())

    Returns:
        datetime: Current UTC time with timezone awareness
    """
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Get current UTC time as ISO format string"""
    return utc_now().isoformat()


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Treat naive datetimes as UTC

    SQLite drops tzinfo on round-trip, PostgreSQL keeps it; both end up aware here.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid_timezone(name: Optional[str]) -> bool:
    """Check whether name is a known IANA timezone"""
    if not name:
        return False
    try:
        ZoneInfo(name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def local_date(value: datetime, tz_name: Optional[str] = None) -> date:
    """
    Calendar date of a moment in the given timezone (UTC when unknown)

    Example:
        >>> local_date(datetime(2025, 1, 2, 3, 0, tzinfo=timezone.utc), "America/New_York")
        datetime.date(2025, 1, 1)
    """
    tz = ZoneInfo(tz_name) if is_valid_timezone(tz_name) else timezone.utc
    return ensure_utc(value).astimezone(tz).date()
