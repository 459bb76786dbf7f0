"""
Tag normalization and the Tag/ItemTag bookkeeping
"""
import re
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from tavlo.core.logging_config import LoggingConfig
from tavlo.models.item import Item, ItemStatus
from tavlo.models.tag import ItemTag, Tag

logger = LoggingConfig.get_logger(__name__)

MAX_TAG_LENGTH = 50
TAG_SORT_OPTIONS = ("usage", "alphabetical", "recent")

_NON_WORD = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_HAS_LETTER = re.compile(r"[a-z]")
_ALL_DIGITS = re.compile(r"^\d+$")


def normalize_tag(tag: str) -> str:
    """
    Canonical tag name: lowercase, punctuation turned into spaces,
    whitespace collapsed, capped at 50 characters.

    >>> normalize_tag("  Node.js ")
    'node js'
    """
    normalized = (tag or "").strip().lower()
    normalized = _NON_WORD.sub(" ", normalized)
    normalized = _WHITESPACE.sub(" ", normalized).strip()
    return normalized[:MAX_TAG_LENGTH]


def is_valid_tag(tag: str) -> bool:
    """A normalized tag is usable if it has 2+ chars and at least one letter"""
    if not tag or len(tag) < 2:
        return False
    if not _HAS_LETTER.search(tag):
        return False
    return not _ALL_DIGITS.match(tag)


def clean_tags(tags: Iterable[str]) -> List[str]:
    """Normalize, drop invalid tags and de-duplicate, keeping first-seen order"""
    seen = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        normalized = normalize_tag(tag)
        if is_valid_tag(normalized) and normalized not in seen:
            seen.append(normalized)
    return seen


class TagService:
    """Maintains Tag rows, ItemTag links and the denormalized usage counts"""

    def __init__(self, db: Session):
        self.db = db

    def _get_or_create_tag(self, name: str, display_name: str) -> Tag:
        tag = self.db.query(Tag).filter(Tag.name == name).first()
        if tag is None:
            tag = Tag(name=name, display_name=display_name, usage_count=0)
            self.db.add(tag)
            self.db.flush()
        return tag

    def assign_tags_to_item(self, item_id: UUID, tags: Iterable[str]) -> List[str]:
        """
        Replace the tag set of an item.

        New links increment usage_count, removed links decrement it (never
        below zero). The Item.tags mirror is updated to the final list.
        Does not commit; callers own the transaction.

        Returns:
            The normalized tag names now linked to the item
        """
        wanted: Dict[str, str] = {}
        for tag in tags or []:
            if not isinstance(tag, str):
                continue
            normalized = normalize_tag(tag)
            if is_valid_tag(normalized) and normalized not in wanted:
                wanted[normalized] = tag.strip().lower()[:100] or normalized

        existing_links = (
            self.db.query(ItemTag)
            .join(Tag, Tag.id == ItemTag.tag_id)
            .filter(ItemTag.item_id == item_id)
            .all()
        )
        linked = {link.tag.name: link for link in existing_links}

        for name, link in linked.items():
            if name not in wanted:
                tag = link.tag
                tag.usage_count = max(0, (tag.usage_count or 0) - 1)
                self.db.delete(link)

        for name, display_name in wanted.items():
            if name in linked:
                continue
            tag = self._get_or_create_tag(name, display_name)
            self.db.add(ItemTag(item_id=item_id, tag_id=tag.id))
            tag.usage_count = (tag.usage_count or 0) + 1

        item = self.db.query(Item).filter(Item.id == item_id).first()
        if item is not None:
            item.tags = list(wanted.keys())

        self.db.flush()
        logger.debug(
            "Assigned tags to item",
            extra={"item_id": str(item_id), "tag_count": len(wanted)},
        )
        return list(wanted.keys())

    def get_top_tags(self, limit: int = 100) -> List[str]:
        """Most used tag display names, used to steer the summarizer"""
        rows = (
            self.db.query(Tag.display_name)
            .filter(Tag.usage_count > 0)
            .order_by(Tag.usage_count.desc(), Tag.name.asc())
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

    def list_user_tags(
        self,
        user_id: UUID,
        q: Optional[str] = None,
        limit: int = 100,
        sort_by: str = "usage",
    ) -> List[Dict[str, Any]]:
        """
        Tags used by a user, with per-user counts over non-deleted items

        Args:
            user_id: Owner of the items
            q: Case-insensitive substring on name or display name
            limit: Max number of tags
            sort_by: usage | alphabetical | recent
        """
        count = func.count(ItemTag.item_id).label("usage_count")
        query = (
            self.db.query(Tag, count)
            .join(ItemTag, ItemTag.tag_id == Tag.id)
            .join(Item, Item.id == ItemTag.item_id)
            .filter(Item.user_id == user_id, Item.status != ItemStatus.DELETED.value)
        )
        if q:
            pattern = f"%{q.lower()}%"
            query = query.filter(
                (func.lower(Tag.name).like(pattern)) | (func.lower(Tag.display_name).like(pattern))
            )
        query = query.group_by(Tag.id)

        if sort_by == "alphabetical":
            query = query.order_by(func.lower(Tag.display_name).asc())
        elif sort_by == "recent":
            query = query.order_by(Tag.created_at.desc())
        else:
            query = query.order_by(count.desc(), Tag.name.asc())

        return [
            {
                "id": str(tag.id),
                "name": tag.name,
                "display_name": tag.display_name,
                "usage_count": usage_count,
                "created_at": tag.created_at.isoformat() if tag.created_at else None,
            }
            for tag, usage_count in query.limit(limit).all()
        ]

    def reconcile_tag_counts(self, exclude_deleted: bool = True, dry_run: bool = False) -> List[Dict[str, Any]]:
        """
        Reset every usage_count to the real number of links.

        Returns:
            One entry per tag whose stored count drifted
        """
        link_counts = self.db.query(ItemTag.tag_id, func.count(ItemTag.item_id)).join(
            Item, Item.id == ItemTag.item_id
        )
        if exclude_deleted:
            link_counts = link_counts.filter(Item.status != ItemStatus.DELETED.value)
        actual = dict(link_counts.group_by(ItemTag.tag_id).all())

        drift = []
        for tag in self.db.query(Tag).order_by(Tag.name).all():
            real = actual.get(tag.id, 0)
            if (tag.usage_count or 0) != real:
                drift.append({"tag": tag.name, "stored": tag.usage_count or 0, "actual": real})
                if not dry_run:
                    tag.usage_count = real

        if dry_run:
            self.db.rollback()
        else:
            self.db.commit()

        logger.info(
            f"Reconciled tag counts: {len(drift)} tag(s) drifted",
            extra={"drifted": len(drift), "dry_run": dry_run, "exclude_deleted": exclude_deleted},
        )
        return drift

    def cleanup_orphaned_item_tags(self, dry_run: bool = False) -> int:
        """Delete links whose tag or item no longer exists"""
        orphans = (
            self.db.query(ItemTag)
            .outerjoin(Tag, Tag.id == ItemTag.tag_id)
            .outerjoin(Item, Item.id == ItemTag.item_id)
            .filter((Tag.id.is_(None)) | (Item.id.is_(None)))
            .all()
        )
        if not dry_run:
            for link in orphans:
                self.db.delete(link)
            self.db.commit()
        logger.info(
            f"Found {len(orphans)} orphaned item tag link(s)",
            extra={"orphans": len(orphans), "dry_run": dry_run},
        )
        return len(orphans)
