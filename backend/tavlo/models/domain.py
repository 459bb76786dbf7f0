"""
Knowledge domains, per-user domain progress and focus areas
"""
from uuid import uuid4

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Integer, String,
                        Text, UniqueConstraint, Uuid)
from sqlalchemy.orm import relationship

from tavlo.core.database import Base
from tavlo.utils.datetime_utils import utc_now


class Domain(Base):
    """Life domain that items and XP roll up into"""
    __tablename__ = "domains"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(50), unique=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(16), nullable=True)
    color = Column(String(16), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "order": self.order,
        }

    def __repr__(self):
        return f"<Domain(name={self.name})>"


class UserDomain(Base):
    """XP and level a user has earned inside one domain"""
    __tablename__ = "user_domains"
    __table_args__ = (UniqueConstraint("user_id", "domain_id", name="uq_user_domains_user_domain"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    domain_id = Column(Uuid(as_uuid=True), ForeignKey("domains.id", ondelete="CASCADE"), nullable=False)
    total_xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    item_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    user = relationship("User", back_populates="domains")
    domain = relationship("Domain")


class FocusArea(Base):
    """Domain a user has chosen to prioritise"""
    __tablename__ = "focus_areas"
    __table_args__ = (UniqueConstraint("user_id", "domain_id", name="uq_focus_areas_user_domain"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    domain_id = Column(Uuid(as_uuid=True), ForeignKey("domains.id", ondelete="CASCADE"), nullable=False)
    priority = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    user = relationship("User", back_populates="focus_areas")
    domain = relationship("Domain")
