"""
Fixed-window rate limit counters
"""
from uuid import uuid4

from sqlalchemy import (Column, DateTime, Integer, String, UniqueConstraint,
                        Uuid)

from tavlo.core.database import Base


class RateLimit(Base):
    """Request count for one identifier inside one aligned window"""
    __tablename__ = "rate_limits"
    __table_args__ = (
        UniqueConstraint("identifier", "window", "window_start", name="uq_rate_limits_identifier_window"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    identifier = Column(String(255), nullable=False, index=True)
    window = Column(String(10), nullable=False)
    window_start = Column(DateTime(timezone=True), nullable=False, index=True)
    count = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<RateLimit(identifier={self.identifier}, window={self.window}, count={self.count})>"
