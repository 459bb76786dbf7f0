"""
Fixed-window rate limiting backed by the rate_limits table
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tavlo.core.config import RateLimitWindow
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.metrics import rate_limit_rejections_total
from tavlo.models.rate_limit import RateLimit
from tavlo.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)

WINDOW_LENGTHS = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
}
# Windows older than this are dropped by cleanup_expired
RETENTION = timedelta(days=2)


class RateLimitResult(BaseModel):
    success: bool
    limit: int
    remaining: int
    reset: int  # unix timestamp of the window end
    retry_after: Optional[int] = None
    window: Optional[str] = None


def window_start(window: str, now: datetime) -> datetime:
    """Start of the UTC minute/hour/day containing now"""
    if window == "minute":
        return now.replace(second=0, microsecond=0)
    if window == "hour":
        return now.replace(minute=0, second=0, microsecond=0)
    if window == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    raise ValueError(f"Unknown rate limit window: {window}")


class RateLimiter:
    def __init__(self, db: Session):
        self.db = db

    def _check_window(self, identifier: str, window: str, limit: int, now: datetime) -> RateLimitResult:
        start = window_start(window, now)
        end = start + WINDOW_LENGTHS[window]

        record = self.db.query(RateLimit).filter(
            RateLimit.identifier == identifier,
            RateLimit.window == window,
            RateLimit.window_start == start,
        ).first()

        allowed = True
        if record is None:
            record = RateLimit(identifier=identifier, window=window, window_start=start, count=1)
            self.db.add(record)
            try:
                self.db.commit()
            except IntegrityError:
                # Created by a concurrent request; count against that row instead
                self.db.rollback()
                return self._check_window(identifier, window, limit, now)
        elif record.count + 1 > limit:
            allowed = False
        else:
            record.count += 1
            self.db.commit()

        return RateLimitResult(
            success=allowed,
            limit=limit,
            remaining=max(0, limit - record.count),
            reset=int(end.timestamp()),
            retry_after=None if allowed else max(1, int((end - now).total_seconds() + 0.999)),
            window=window,
        )

    def check(
        self,
        identifier: str,
        limits: Iterable[RateLimitWindow],
        now: Optional[datetime] = None,
    ) -> RateLimitResult:
        """
        Count a request against every window, stopping at the first one exceeded.

        A rejected request is not counted in the exceeded window. When all
        windows pass, the one with the fewest remaining requests is reported.
        """
        now = now or utc_now()
        results: List[RateLimitResult] = []
        for limit in limits:
            result = self._check_window(identifier, limit.window, limit.limit, now)
            if not result.success:
                rate_limit_rejections_total.labels(window=limit.window).inc()
                logger.warning(
                    "Rate limit exceeded",
                    extra={"identifier": identifier, "window": limit.window, "limit": limit.limit},
                )
                return result
            results.append(result)

        if not results:
            return RateLimitResult(success=True, limit=0, remaining=0, reset=int(now.timestamp()))
        return min(results, key=lambda r: r.remaining)

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or utc_now()) - RETENTION
        deleted = self.db.query(RateLimit).filter(RateLimit.window_start < cutoff).delete(
            synchronize_session=False
        )
        self.db.commit()
        logger.info(f"Deleted {deleted} expired rate limit window(s)")
        return deleted
