"""
Tags and item-tag links
"""
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from tavlo.core.database import Base
from tavlo.utils.datetime_utils import utc_now


class Tag(Base):
    """Global tag; usage_count is a denormalized count of ItemTag links"""
    __tablename__ = "tags"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    item_tags = relationship("ItemTag", back_populates="tag")

    def __repr__(self):
        return f"<Tag(name={self.name}, usage_count={self.usage_count})>"


class ItemTag(Base):
    """Link between an item and a tag"""
    __tablename__ = "item_tags"

    # No FK cascades here: orphaned links are cleaned up by maintenance
    item_id = Column(Uuid(as_uuid=True), ForeignKey("items.id"), primary_key=True)
    tag_id = Column(Uuid(as_uuid=True), ForeignKey("tags.id"), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    item = relationship("Item", back_populates="item_tags")
    tag = relationship("Tag", back_populates="item_tags")

    def __repr__(self):
        return f"<ItemTag(item_id={self.item_id}, tag_id={self.tag_id})>"
