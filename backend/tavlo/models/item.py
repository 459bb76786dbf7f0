"""
Saved content item
"""
from enum import Enum
from uuid import uuid4

from sqlalchemy import (JSON, Column, DateTime, ForeignKey, Index, String,
                        Text, UniqueConstraint, Uuid)
from sqlalchemy.orm import relationship

from tavlo.core.database import Base
from tavlo.utils.datetime_utils import utc_now


class ItemStatus(str, Enum):
    """Review status of an item"""
    NEW = "new"
    REVIEWED = "reviewed"
    PINNED = "pinned"
    DELETED = "deleted"


class ItemType(str, Enum):
    """What the reader is expected to do with an item"""
    LEARN = "learn"
    DO = "do"
    REFERENCE = "reference"


class ItemCategory(str, Enum):
    """Topical category assigned by the summarizer"""
    TECH = "tech"
    BUSINESS = "business"
    DESIGN = "design"
    PRODUCTIVITY = "productivity"
    LEARNING = "learning"
    LIFESTYLE = "lifestyle"
    ENTERTAINMENT = "entertainment"
    NEWS = "news"
    FINANCE = "finance"
    PHILOSOPHY = "philosophy"
    ECONOMICS = "economics"
    FASHION = "fashion"
    TRAVEL = "travel"
    OTHER = "other"


class ImportSource(str, Enum):
    """Channel an item was imported through, if not saved by URL"""
    EMAIL = "email"
    TWITTER = "twitter"


class Item(Base):
    """A saved URL or email with extracted and summarized metadata"""
    __tablename__ = "items"
    __table_args__ = (
        UniqueConstraint("user_id", "import_source", "external_id", name="uq_items_user_import_external"),
        Index("ix_items_user_status_created", "user_id", "status", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    note = Column(String(500), nullable=True)
    source = Column(String(255), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=ItemStatus.NEW.value)
    title = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    # Mirror of the ItemTag links, kept for cheap list rendering
    tags = Column(JSON, nullable=False, default=list)
    author = Column(String(255), nullable=True, index=True)
    type = Column(String(20), nullable=True)
    category = Column(String(50), nullable=True, index=True)
    raw_content = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    embed_html = Column(Text, nullable=True)
    domain_id = Column(Uuid(as_uuid=True), ForeignKey("domains.id", ondelete="SET NULL"), nullable=True, index=True)
    import_source = Column(String(50), nullable=True)
    external_id = Column(String(512), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    user = relationship("User", back_populates="items")
    domain = relationship("Domain")
    item_tags = relationship("ItemTag", back_populates="item", cascade="all, delete-orphan")

    @property
    def summary_bullets(self):
        return [line for line in (self.summary or "").split("\n") if line.strip()]

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "url": self.url,
            "note": self.note,
            "source": self.source,
            "status": self.status,
            "title": self.title,
            "summary": self.summary_bullets,
            "tags": list(self.tags or []),
            "author": self.author,
            "type": self.type,
            "category": self.category,
            "image_url": self.image_url,
            "embed_html": self.embed_html,
            "domain_id": str(self.domain_id) if self.domain_id else None,
            "import_source": self.import_source,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Item(id={self.id}, source={self.source}, status={self.status})>"
