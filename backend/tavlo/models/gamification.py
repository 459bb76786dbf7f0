"""
Gamification bookkeeping: user stats, XP events and badges
"""
from enum import Enum
from uuid import uuid4

from sqlalchemy import (JSON, Column, DateTime, ForeignKey, Integer, String,
                        Text, UniqueConstraint, Uuid)
from sqlalchemy.orm import relationship

from tavlo.core.database import Base
from tavlo.utils.datetime_utils import utc_now


class BadgeRarity(str, Enum):
    """Badge rarity tiers"""
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class UserStats(Base):
    """Aggregate XP, level, streak and counters for a user"""
    __tablename__ = "user_stats"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    total_xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    items_saved = Column(Integer, nullable=False, default=0)
    items_processed = Column(Integer, nullable=False, default=0)
    reflections = Column(Integer, nullable=False, default=0)
    quests_completed = Column(Integer, nullable=False, default=0)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    user = relationship("User", back_populates="stats")

    def __repr__(self):
        return f"<UserStats(user_id={self.user_id}, total_xp={self.total_xp}, level={self.level})>"


class XPEvent(Base):
    """Ledger entry for every XP award"""
    __tablename__ = "xp_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    xp = Column(Integer, nullable=False)
    domain_id = Column(Uuid(as_uuid=True), ForeignKey("domains.id", ondelete="SET NULL"), nullable=True)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="SET NULL"), nullable=True, index=True)
    event_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)

    user = relationship("User", back_populates="xp_events")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "action": self.action,
            "xp": self.xp,
            "domain_id": str(self.domain_id) if self.domain_id else None,
            "item_id": str(self.item_id) if self.item_id else None,
            "metadata": self.event_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Badge(Base):
    """Achievement definition; criteria is a JSON rule evaluated by BadgeService"""
    __tablename__ = "badges"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    key = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(16), nullable=True)
    rarity = Column(String(20), nullable=False, default=BadgeRarity.COMMON.value)
    criteria = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "rarity": self.rarity,
            "criteria": self.criteria,
        }


class UserBadge(Base):
    """Badge earned by a user"""
    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    badge_id = Column(Uuid(as_uuid=True), ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    earned_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    seen_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="badges")
    badge = relationship("Badge")
