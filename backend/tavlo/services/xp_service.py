"""
XP values, level progression and the XP ledger
"""
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from tavlo.core.errors import InvalidInputError
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.metrics import xp_awarded_total
from tavlo.models.domain import Domain, FocusArea, UserDomain
from tavlo.models.gamification import UserStats, XPEvent
from tavlo.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)


class XPAction:
    SAVE_ITEM = "save_item"
    PROCESS_ITEM = "process_item"
    ADD_REFLECTION = "add_reflection"
    COMPLETE_DAILY_QUEST = "complete_daily_quest"
    COMPLETE_WEEKLY_QUEST = "complete_weekly_quest"
    MAINTAIN_STREAK = "maintain_streak"
    FIRST_ITEM_OF_DAY = "first_item_of_day"
    FOCUS_AREA_BONUS = "focus_area_bonus"


XP_VALUES: Dict[str, int] = {
    XPAction.SAVE_ITEM: 5,
    XPAction.PROCESS_ITEM: 10,
    XPAction.ADD_REFLECTION: 15,
    XPAction.COMPLETE_DAILY_QUEST: 25,
    XPAction.COMPLETE_WEEKLY_QUEST: 100,
    XPAction.MAINTAIN_STREAK: 10,
    XPAction.FIRST_ITEM_OF_DAY: 5,
    XPAction.FOCUS_AREA_BONUS: 5,
}

# XP needed to reach level index+1
LEVEL_THRESHOLDS = [
    0, 100, 250, 500, 1000, 1750, 2750, 4000, 5500, 7500,
    10000, 13000, 16500, 20500, 25000, 30000, 36000, 43000, 51000, 60000,
]
MAX_LEVEL = len(LEVEL_THRESHOLDS)

# UserStats counter bumped by each action
_ACTION_COUNTERS = {
    XPAction.SAVE_ITEM: "items_saved",
    XPAction.PROCESS_ITEM: "items_processed",
    XPAction.ADD_REFLECTION: "reflections",
    XPAction.COMPLETE_DAILY_QUEST: "quests_completed",
    XPAction.COMPLETE_WEEKLY_QUEST: "quests_completed",
}


class LevelProgress(BaseModel):
    current_level: int
    next_level_xp: int
    xp_needed: int
    progress: int


class XPAwardResult(BaseModel):
    xp_awarded: int
    total_xp: int
    level: int
    level_up: bool
    previous_level: int
    domain_xp: Optional[int] = None
    domain_level: Optional[int] = None


def calculate_level(xp: int) -> int:
    for index in range(MAX_LEVEL - 1, -1, -1):
        if xp >= LEVEL_THRESHOLDS[index]:
            return index + 1
    return 1


def get_xp_for_next_level(current_xp: int) -> LevelProgress:
    current_level = calculate_level(current_xp)
    if current_level >= MAX_LEVEL:
        return LevelProgress(
            current_level=MAX_LEVEL,
            next_level_xp=LEVEL_THRESHOLDS[MAX_LEVEL - 1],
            xp_needed=0,
            progress=100,
        )

    current_level_xp = LEVEL_THRESHOLDS[current_level - 1]
    next_level_xp = LEVEL_THRESHOLDS[current_level]
    progress = round((current_xp - current_level_xp) / (next_level_xp - current_level_xp) * 100)
    return LevelProgress(
        current_level=current_level,
        next_level_xp=next_level_xp,
        xp_needed=next_level_xp - current_xp,
        progress=progress,
    )


def stats_to_dict(stats: Optional[UserStats]) -> Dict[str, Any]:
    """Serialize UserStats, with zeroed defaults when the user has none"""
    if stats is None:
        return {
            "total_xp": 0,
            "level": 1,
            "items_saved": 0,
            "items_processed": 0,
            "reflections": 0,
            "quests_completed": 0,
            "current_streak": 0,
            "longest_streak": 0,
            "last_activity_at": None,
            "timezone": "UTC",
            "level_progress": get_xp_for_next_level(0).model_dump(),
        }
    return {
        "total_xp": stats.total_xp,
        "level": stats.level,
        "items_saved": stats.items_saved,
        "items_processed": stats.items_processed,
        "reflections": stats.reflections,
        "quests_completed": stats.quests_completed,
        "current_streak": stats.current_streak,
        "longest_streak": stats.longest_streak,
        "last_activity_at": stats.last_activity_at.isoformat() if stats.last_activity_at else None,
        "timezone": stats.timezone,
        "level_progress": get_xp_for_next_level(stats.total_xp).model_dump(),
    }


class XPService:
    """Awards XP and reads XP-derived stats"""

    def __init__(self, db: Session):
        self.db = db

    def award_xp(
        self,
        user_id: UUID,
        action: str,
        domain_id: Optional[UUID] = None,
        item_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        amount: Optional[int] = None,
    ) -> XPAwardResult:
        """
        Award XP for an action.

        Writes an XPEvent, updates UserStats (creating it if needed) and,
        when a domain is given, the per-domain progress. Commits.

        Args:
            user_id: Recipient
            action: One of XP_VALUES keys
            domain_id: Domain the XP also counts towards
            item_id: Item the action was performed on
            metadata: Free-form context stored on the event
            amount: Override for the default XP value
        """
        xp_amount = amount if amount is not None else XP_VALUES.get(action, 0)
        now = utc_now()

        try:
            stats = self.db.query(UserStats).filter(UserStats.user_id == user_id).first()
            if stats is None:
                stats = UserStats(
                    user_id=user_id,
                    total_xp=0,
                    level=1,
                    current_streak=0,
                    longest_streak=0,
                    items_saved=0,
                    items_processed=0,
                    reflections=0,
                    quests_completed=0,
                )
                self.db.add(stats)

            previous_level = stats.level or 1
            stats.total_xp = (stats.total_xp or 0) + xp_amount
            stats.level = calculate_level(stats.total_xp)
            counter = _ACTION_COUNTERS.get(action)
            if counter:
                setattr(stats, counter, (getattr(stats, counter) or 0) + 1)

            self.db.add(XPEvent(
                user_id=user_id,
                action=action,
                xp=xp_amount,
                domain_id=domain_id,
                item_id=item_id,
                event_metadata=metadata,
                created_at=now,
            ))

            domain_xp = None
            domain_level = None
            if domain_id:
                user_domain = self.db.query(UserDomain).filter(
                    UserDomain.user_id == user_id,
                    UserDomain.domain_id == domain_id,
                ).first()
                if user_domain is None:
                    user_domain = UserDomain(user_id=user_id, domain_id=domain_id, total_xp=0, level=1, item_count=0)
                    self.db.add(user_domain)
                user_domain.total_xp = (user_domain.total_xp or 0) + xp_amount
                user_domain.level = calculate_level(user_domain.total_xp)
                if action == XPAction.PROCESS_ITEM:
                    user_domain.item_count = (user_domain.item_count or 0) + 1
                domain_xp = user_domain.total_xp
                domain_level = user_domain.level

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error awarding XP: {e}", exc_info=True, extra={"user_id": str(user_id), "action": action})
            raise

        xp_awarded_total.labels(action=action).inc(xp_amount)
        level_up = stats.level > previous_level
        if level_up:
            logger.info(
                f"User leveled up to {stats.level}",
                extra={"user_id": str(user_id), "previous_level": previous_level},
            )

        return XPAwardResult(
            xp_awarded=xp_amount,
            total_xp=stats.total_xp,
            level=stats.level,
            level_up=level_up,
            previous_level=previous_level,
            domain_xp=domain_xp,
            domain_level=domain_level,
        )

    def get_user_stats(self, user_id: UUID) -> Dict[str, Any]:
        stats = self.db.query(UserStats).filter(UserStats.user_id == user_id).first()
        return stats_to_dict(stats)

    def get_user_domain_stats(self, user_id: UUID) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(UserDomain)
            .filter(UserDomain.user_id == user_id)
            .order_by(UserDomain.total_xp.desc())
            .all()
        )
        return [
            {
                "domain": row.domain.to_dict() if row.domain else None,
                "total_xp": row.total_xp,
                "level": row.level,
                "item_count": row.item_count,
                "level_progress": get_xp_for_next_level(row.total_xp).model_dump(),
            }
            for row in rows
        ]

    def get_recent_xp_events(self, user_id: UUID, limit: int = 20) -> List[XPEvent]:
        return (
            self.db.query(XPEvent)
            .filter(XPEvent.user_id == user_id)
            .order_by(XPEvent.created_at.desc())
            .limit(limit)
            .all()
        )

    def is_in_focus_area(self, user_id: UUID, domain_id: Optional[UUID]) -> bool:
        if not domain_id:
            return False
        focus_area = self.db.query(FocusArea).filter(
            FocusArea.user_id == user_id,
            FocusArea.domain_id == domain_id,
        ).first()
        return focus_area is not None

    def get_focus_domain_ids(self, user_id: UUID) -> set:
        rows = self.db.query(FocusArea.domain_id).filter(
            FocusArea.user_id == user_id,
            FocusArea.is_active.is_(True),
        ).all()
        return {row[0] for row in rows}

    def get_focus_areas(self, user_id: UUID) -> List[FocusArea]:
        return (
            self.db.query(FocusArea)
            .filter(FocusArea.user_id == user_id)
            .order_by(FocusArea.priority.asc())
            .all()
        )

    def set_focus_areas(self, user_id: UUID, domain_ids: List[UUID]) -> List[FocusArea]:
        """
        Replace the user's focus areas; priority follows the given order.

        Raises:
            InvalidInputError: an id is unknown or repeated
        """
        found = self.db.query(Domain.id).filter(Domain.id.in_(domain_ids)).count()
        if found != len(domain_ids):
            raise InvalidInputError("One or more invalid domain IDs")

        try:
            self.db.query(FocusArea).filter(FocusArea.user_id == user_id).delete(synchronize_session=False)
            for priority, domain_id in enumerate(domain_ids, start=1):
                self.db.add(FocusArea(user_id=user_id, domain_id=domain_id, priority=priority))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error setting focus areas: {e}", exc_info=True, extra={"user_id": str(user_id)})
            raise

        logger.info("Focus areas updated", extra={"user_id": str(user_id), "count": len(domain_ids)})
        return self.get_focus_areas(user_id)

    def get_item_xp(self, user_id: UUID, item_ids: Iterable[UUID]) -> Dict[UUID, Dict[str, Any]]:
        """XP earned per item, with a per-action breakdown"""
        item_ids = list(item_ids)
        if not item_ids:
            return {}
        events = self.db.query(XPEvent.item_id, XPEvent.action, XPEvent.xp).filter(
            XPEvent.user_id == user_id,
            XPEvent.item_id.in_(item_ids),
        ).all()

        result: Dict[UUID, Dict[str, Any]] = {}
        for item_id, action, xp in events:
            entry = result.setdefault(item_id, {"total": 0, "breakdown": {}})
            entry["total"] += xp
            entry["breakdown"][action] = entry["breakdown"].get(action, 0) + xp
        return result
