"""
User model mirrored from Clerk
"""
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from tavlo.core.database import Base
from tavlo.utils.datetime_utils import utc_now


class User(Base):
    """Local user record keyed by the Clerk user id"""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    clerk_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(320), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    items = relationship("Item", back_populates="user", cascade="all, delete-orphan")
    stats = relationship("UserStats", back_populates="user", uselist=False, cascade="all, delete-orphan")
    badges = relationship("UserBadge", back_populates="user", cascade="all, delete-orphan")
    domains = relationship("UserDomain", back_populates="user", cascade="all, delete-orphan")
    focus_areas = relationship("FocusArea", back_populates="user", cascade="all, delete-orphan")
    xp_events = relationship("XPEvent", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, clerk_id={self.clerk_id})>"
