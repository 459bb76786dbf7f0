"""
Badge definitions, criteria evaluation and awarding
"""
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tavlo.core.cache import reference_cache
from tavlo.core.config import get_settings
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.metrics import badges_awarded_total
from tavlo.models.domain import UserDomain
from tavlo.models.gamification import Badge, BadgeRarity, UserBadge, UserStats
from tavlo.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)

ALL_BADGES_CACHE_KEY = "badges:all"


class BadgeCriteria:
    ITEM_COUNT = "item_count"
    STREAK = "streak"
    DOMAIN_LEVEL = "domain_level"
    XP_TOTAL = "xp_total"
    # Awarded manually, never by check_all_badges
    SPECIAL = "special"


_RARITY_ORDER = {
    BadgeRarity.COMMON.value: 0,
    BadgeRarity.RARE.value: 1,
    BadgeRarity.EPIC.value: 2,
    BadgeRarity.LEGENDARY.value: 3,
}


def _badge(key, name, description, icon, rarity, criteria_type, value):
    return {
        "key": key,
        "name": name,
        "description": description,
        "icon": icon,
        "rarity": rarity.value,
        "criteria": {"type": criteria_type, "value": value},
    }


DEFAULT_BADGES = [
    _badge("first_item", "First Steps", "Save your first item", "🌱",
           BadgeRarity.COMMON, BadgeCriteria.ITEM_COUNT, 1),
    _badge("items_10", "Collector", "Save 10 items", "📚",
           BadgeRarity.COMMON, BadgeCriteria.ITEM_COUNT, 10),
    _badge("items_50", "Knowledge Seeker", "Save 50 items", "🔍",
           BadgeRarity.RARE, BadgeCriteria.ITEM_COUNT, 50),
    _badge("items_100", "Curator", "Save 100 items", "🏛️",
           BadgeRarity.EPIC, BadgeCriteria.ITEM_COUNT, 100),
    _badge("streak_3", "Habit Former", "Maintain a 3-day streak", "🔥",
           BadgeRarity.COMMON, BadgeCriteria.STREAK, 3),
    _badge("streak_7", "Week Warrior", "Maintain a 7-day streak", "⚡",
           BadgeRarity.RARE, BadgeCriteria.STREAK, 7),
    _badge("streak_30", "Consistency King", "Maintain a 30-day streak", "👑",
           BadgeRarity.EPIC, BadgeCriteria.STREAK, 30),
    _badge("streak_100", "Unstoppable", "Maintain a 100-day streak", "🚀",
           BadgeRarity.LEGENDARY, BadgeCriteria.STREAK, 100),
    _badge("xp_100", "Novice", "Earn 100 XP", "⭐",
           BadgeRarity.COMMON, BadgeCriteria.XP_TOTAL, 100),
    _badge("xp_500", "Adept", "Earn 500 XP", "💫",
           BadgeRarity.RARE, BadgeCriteria.XP_TOTAL, 500),
    _badge("xp_1000", "Expert", "Earn 1,000 XP", "✨",
           BadgeRarity.EPIC, BadgeCriteria.XP_TOTAL, 1000),
    _badge("xp_5000", "Master", "Earn 5,000 XP", "🌟",
           BadgeRarity.LEGENDARY, BadgeCriteria.XP_TOTAL, 5000),
    _badge("domain_level_5", "Domain Specialist", "Reach level 5 in any domain", "🎯",
           BadgeRarity.RARE, BadgeCriteria.DOMAIN_LEVEL, 5),
    _badge("domain_level_10", "Domain Expert", "Reach level 10 in any domain", "🏆",
           BadgeRarity.EPIC, BadgeCriteria.DOMAIN_LEVEL, 10),
]


class AwardedBadge(BaseModel):
    id: str
    key: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    rarity: str
    earned_at: str


class BadgeService:
    """Checks badge criteria against user stats and records earned badges"""

    def __init__(self, db: Session):
        self.db = db

    def _meets_criteria(self, user_id: UUID, criteria: Dict[str, Any]) -> bool:
        criteria_type = (criteria or {}).get("type")
        value = (criteria or {}).get("value") or 0

        if criteria_type == BadgeCriteria.DOMAIN_LEVEL:
            query = self.db.query(UserDomain).filter(
                UserDomain.user_id == user_id,
                UserDomain.level >= value,
            )
            domain_id = criteria.get("domain_id")
            if domain_id:
                query = query.filter(UserDomain.domain_id == UUID(str(domain_id)))
            return query.first() is not None

        stats = self.db.query(UserStats).filter(UserStats.user_id == user_id).first()
        if stats is None:
            return False
        if criteria_type == BadgeCriteria.ITEM_COUNT:
            return (stats.items_processed or 0) >= value
        if criteria_type == BadgeCriteria.STREAK:
            return (stats.current_streak or 0) >= value or (stats.longest_streak or 0) >= value
        if criteria_type == BadgeCriteria.XP_TOTAL:
            return (stats.total_xp or 0) >= value
        return False

    def check_and_award_badge(self, user_id: UUID, badge_key: str) -> Optional[AwardedBadge]:
        """
        Award a badge if the user qualifies and does not already have it

        Returns:
            The awarded badge, or None when nothing was awarded
        """
        badge = self.db.query(Badge).filter(Badge.key == badge_key).first()
        if badge is None:
            logger.warning(f"Badge not found: {badge_key}")
            return None

        already_earned = self.db.query(UserBadge).filter(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge.id,
        ).first()
        if already_earned is not None:
            return None

        if not self._meets_criteria(user_id, badge.criteria):
            return None

        user_badge = UserBadge(user_id=user_id, badge_id=badge.id, earned_at=utc_now())
        self.db.add(user_badge)
        try:
            self.db.commit()
        except IntegrityError:
            # Awarded concurrently by another request
            self.db.rollback()
            return None

        badges_awarded_total.labels(badge_key=badge.key).inc()
        logger.info(f"Badge awarded: {badge.name}", extra={"user_id": str(user_id), "badge_key": badge.key})
        return AwardedBadge(
            id=str(badge.id),
            key=badge.key,
            name=badge.name,
            description=badge.description,
            icon=badge.icon,
            rarity=badge.rarity,
            earned_at=user_badge.earned_at.isoformat(),
        )

    def check_all_badges(self, user_id: UUID) -> List[AwardedBadge]:
        awarded = []
        for badge in self.get_all_badges():
            if (badge["criteria"] or {}).get("type") == BadgeCriteria.SPECIAL:
                continue
            result = self.check_and_award_badge(user_id, badge["key"])
            if result is not None:
                awarded.append(result)
        return awarded

    def get_user_badges(self, user_id: UUID) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(UserBadge)
            .filter(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc())
            .all()
        )
        return [
            {
                **row.badge.to_dict(),
                "earned_at": row.earned_at.isoformat() if row.earned_at else None,
                "seen_at": row.seen_at.isoformat() if row.seen_at else None,
            }
            for row in rows
        ]

    def get_all_badges(self) -> List[Dict[str, Any]]:
        """All badge definitions ordered by rarity then threshold; cached"""
        def load():
            badges = [badge.to_dict() for badge in self.db.query(Badge).all()]
            badges.sort(key=lambda b: (
                _RARITY_ORDER.get(b["rarity"], len(_RARITY_ORDER)),
                (b["criteria"] or {}).get("value") or 0,
            ))
            return badges

        return reference_cache.get_or_set(
            ALL_BADGES_CACHE_KEY,
            load,
            ttl=get_settings().badge_cache_ttl_seconds,
        )

    def mark_badges_seen(self, user_id: UUID, badge_ids: Optional[Iterable[UUID]] = None) -> int:
        """Set seen_at on unseen badges (all of them when badge_ids is None)"""
        query = self.db.query(UserBadge).filter(
            UserBadge.user_id == user_id,
            UserBadge.seen_at.is_(None),
        )
        if badge_ids is not None:
            query = query.filter(UserBadge.badge_id.in_(list(badge_ids)))
        count = query.update({UserBadge.seen_at: utc_now()}, synchronize_session=False)
        self.db.commit()
        return count

    def seed_badges(self) -> int:
        """Insert or update DEFAULT_BADGES; returns the number of new rows"""
        created = 0
        for data in DEFAULT_BADGES:
            badge = self.db.query(Badge).filter(Badge.key == data["key"]).first()
            if badge is None:
                self.db.add(Badge(**data))
                created += 1
                logger.info(f"Creating badge {data['key']}")
            else:
                for key, value in data.items():
                    setattr(badge, key, value)
        self.db.commit()
        reference_cache.delete(ALL_BADGES_CACHE_KEY)
        return created
