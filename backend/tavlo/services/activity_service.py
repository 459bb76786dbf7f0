"""
Activity tracking for streaks
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from tavlo.core.logging_config import LoggingConfig
from tavlo.models.gamification import UserStats, XPEvent
from tavlo.services.streak_service import StreakService, StreakUpdateResult
from tavlo.utils.datetime_utils import ensure_utc, local_date, utc_now

logger = LoggingConfig.get_logger(__name__)


class StreakActivity:
    """Activities that count toward the daily streak"""
    SAVE_ITEM = "save_item"
    PROCESS_ITEM = "process_item"
    ADD_REFLECTION = "add_reflection"
    REVIEW_ITEM = "review_item"
    UPDATE_ITEM = "update_item"


STREAK_ACTIVITIES = (
    StreakActivity.SAVE_ITEM,
    StreakActivity.PROCESS_ITEM,
    StreakActivity.ADD_REFLECTION,
    StreakActivity.REVIEW_ITEM,
    StreakActivity.UPDATE_ITEM,
)


class TrackActivityResult(BaseModel):
    success: bool
    activity_logged: bool
    streak_result: Optional[StreakUpdateResult] = None
    error: Optional[str] = None


class ActivityService:
    def __init__(self, db: Session):
        self.db = db

    def track_activity(
        self,
        user_id: UUID,
        activity: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TrackActivityResult:
        """Update the user's streak for an activity; failures are reported, not raised"""
        try:
            streak_result = StreakService(self.db).update_streak(user_id)
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Failed to track activity {activity}: {e}",
                exc_info=True,
                extra={"user_id": str(user_id), "activity": activity},
            )
            return TrackActivityResult(success=False, activity_logged=False, error=str(e))

        logger.info(
            f"Activity tracked: {activity}",
            extra={
                "user_id": str(user_id),
                "activity": activity,
                "current_streak": streak_result.current_streak,
                "maintained": streak_result.streak_maintained,
                "first_today": streak_result.first_activity_today,
                **(metadata or {}),
            },
        )
        return TrackActivityResult(success=True, activity_logged=True, streak_result=streak_result)

    def get_today_activity_status(self, user_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        stats = self.db.query(UserStats).filter(UserStats.user_id == user_id).first()
        if stats is None:
            return {
                "has_activity_today": False,
                "last_activity_at": None,
                "current_streak": 0,
                "timezone": "UTC",
            }

        timezone_name = stats.timezone or "UTC"
        last_activity = ensure_utc(stats.last_activity_at)
        has_activity_today = bool(
            last_activity
            and local_date(last_activity, timezone_name) == local_date(now or utc_now(), timezone_name)
        )
        return {
            "has_activity_today": has_activity_today,
            "last_activity_at": last_activity.isoformat() if last_activity else None,
            "current_streak": stats.current_streak,
            "timezone": timezone_name,
        }

    def get_activity_history(self, user_id: UUID, days: int = 90) -> List[str]:
        """Distinct active dates (ISO, user's timezone) over the last `days` days, oldest first"""
        stats = self.db.query(UserStats).filter(UserStats.user_id == user_id).first()
        timezone_name = stats.timezone if stats else None
        since = utc_now() - timedelta(days=days)

        rows = (
            self.db.query(XPEvent.created_at)
            .filter(XPEvent.user_id == user_id, XPEvent.created_at >= since)
            .order_by(XPEvent.created_at.asc())
            .all()
        )
        dates = []
        for (created_at,) in rows:
            day = local_date(created_at, timezone_name).isoformat()
            if day not in dates:
                dates.append(day)
        return dates
