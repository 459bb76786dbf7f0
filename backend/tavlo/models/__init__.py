"""
SQLAlchemy models
"""
from tavlo.core.database import Base  # noqa: F401
from tavlo.models.domain import Domain, FocusArea, UserDomain  # noqa: F401
from tavlo.models.gamification import (Badge, BadgeRarity,  # noqa: F401
                                       UserBadge, UserStats, XPEvent)
from tavlo.models.item import (ImportSource, Item, ItemCategory,  # noqa: F401
                               ItemStatus, ItemType)
from tavlo.models.rate_limit import RateLimit  # noqa: F401
from tavlo.models.tag import ItemTag, Tag  # noqa: F401
from tavlo.models.user import User  # noqa: F401
