"""
Daily activity streaks

Days are calendar days in the user's timezone (UserStats.timezone, UTC
when unset or unknown).
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from tavlo.core.errors import InvalidInputError
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.gamification import UserStats, XPEvent
from tavlo.services.xp_service import XPAction, XPService
from tavlo.utils.datetime_utils import (ensure_utc, is_valid_timezone,
                                       local_date, utc_now)

logger = LoggingConfig.get_logger(__name__)


class StreakUpdateResult(BaseModel):
    current_streak: int
    longest_streak: int
    streak_maintained: bool = False
    streak_broken: bool = False
    first_activity_today: bool = False


class StreakService:
    def __init__(self, db: Session):
        self.db = db

    def _get_stats(self, user_id: UUID) -> Optional[UserStats]:
        return self.db.query(UserStats).filter(UserStats.user_id == user_id).first()

    def update_streak(self, user_id: UUID, now: Optional[datetime] = None) -> StreakUpdateResult:
        """
        Record activity for today and advance, keep or reset the streak.

        The first activity on the day after the last active day extends the
        streak and awards maintain_streak XP; a longer gap restarts it at 1.
        """
        now = now or utc_now()
        stats = self._get_stats(user_id)

        if stats is None:
            stats = UserStats(
                user_id=user_id,
                total_xp=0,
                level=1,
                current_streak=1,
                longest_streak=1,
                last_activity_at=now,
                items_saved=0,
                items_processed=0,
                reflections=0,
                quests_completed=0,
            )
            self.db.add(stats)
            self.db.commit()
            return StreakUpdateResult(current_streak=1, longest_streak=1, first_activity_today=True)

        tz_name = stats.timezone
        today = local_date(now, tz_name)
        last_activity = ensure_utc(stats.last_activity_at)
        last_day = local_date(last_activity, tz_name) if last_activity else None

        if last_day == today:
            stats.last_activity_at = now
            self.db.commit()
            return StreakUpdateResult(
                current_streak=stats.current_streak,
                longest_streak=stats.longest_streak,
            )

        streak_maintained = False
        streak_broken = False
        if last_day is None:
            new_streak = 1
        elif last_day + timedelta(days=1) == today:
            new_streak = (stats.current_streak or 0) + 1
            streak_maintained = True
        else:
            new_streak = 1
            streak_broken = True

        if streak_maintained:
            try:
                XPService(self.db).award_xp(
                    user_id,
                    XPAction.MAINTAIN_STREAK,
                    metadata={"current_streak": new_streak, "date": today.isoformat()},
                )
            except Exception as e:
                logger.error(f"Failed to award streak XP: {e}", extra={"user_id": str(user_id)})
            # award_xp may have rolled back and expired the row
            stats = self._get_stats(user_id)

        stats.current_streak = new_streak
        stats.longest_streak = max(stats.longest_streak or 0, new_streak)
        stats.last_activity_at = now
        self.db.commit()

        return StreakUpdateResult(
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            streak_maintained=streak_maintained,
            streak_broken=streak_broken,
            first_activity_today=True,
        )

    def update_timezone(self, user_id: UUID, tz_name: str) -> UserStats:
        """
        Set the timezone streak days are counted in, creating stats if needed

        Raises:
            InvalidInputError: tz_name is not an IANA timezone
        """
        if not is_valid_timezone(tz_name):
            raise InvalidInputError("Invalid IANA timezone identifier")

        stats = self._get_stats(user_id)
        if stats is None:
            stats = UserStats(user_id=user_id, timezone=tz_name)
            self.db.add(stats)
        else:
            stats.timezone = tz_name
        self.db.commit()
        self.db.refresh(stats)
        logger.info("Timezone updated", extra={"user_id": str(user_id), "timezone": tz_name})
        return stats

    def get_user_streak(self, user_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        stats = self._get_stats(user_id)
        if stats is None:
            return {
                "current_streak": 0,
                "longest_streak": 0,
                "last_activity_at": None,
                "is_active": False,
            }

        now = now or utc_now()
        last_activity = ensure_utc(stats.last_activity_at)
        return {
            "current_streak": stats.current_streak,
            "longest_streak": stats.longest_streak,
            "last_activity_at": last_activity.isoformat() if last_activity else None,
            "is_active": bool(last_activity and last_activity > now - timedelta(hours=24)),
        }

    def recalculate_streak(self, user_id: UUID, now: Optional[datetime] = None) -> Optional[Dict[str, int]]:
        """
        Rebuild current and longest streak from the XP event history.

        The current streak counts back from today, or from yesterday when
        there is no activity yet today. Returns None when the user has no
        stats record.
        """
        stats = self._get_stats(user_id)
        if stats is None:
            return None

        tz_name = stats.timezone
        timestamps = [
            ensure_utc(row[0])
            for row in self.db.query(XPEvent.created_at)
            .filter(XPEvent.user_id == user_id)
            .order_by(XPEvent.created_at.asc())
            .all()
        ]
        if not timestamps:
            return {"current_streak": stats.current_streak, "longest_streak": stats.longest_streak}

        active_days = {local_date(ts, tz_name) for ts in timestamps}

        longest = 0
        run = 0
        previous = None
        for day in sorted(active_days):
            run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
            longest = max(longest, run)
            previous = day

        check_day = local_date(now or utc_now(), tz_name)
        if check_day not in active_days:
            check_day -= timedelta(days=1)
        current = 0
        while check_day in active_days:
            current += 1
            check_day -= timedelta(days=1)

        old = (stats.current_streak, stats.longest_streak)
        stats.current_streak = current
        stats.longest_streak = longest
        stats.last_activity_at = timestamps[-1]
        self.db.commit()

        logger.info(
            "Recalculated streak",
            extra={"user_id": str(user_id), "old": list(old), "current": current, "longest": longest},
        )
        return {"current_streak": current, "longest_streak": longest}
