"""
API routes for browsing the library: tags, categories and platforms
"""
from typing import Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from tavlo.core.auth import get_current_user
from tavlo.core.database import get_db
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.item import Item, ItemCategory, ItemStatus
from tavlo.models.user import User
from tavlo.services.platforms import consolidate_platforms
from tavlo.services.tag_service import TagService

router = APIRouter(prefix="/api", tags=["library"])
logger = LoggingConfig.get_logger(__name__)

MAX_CATEGORY_PREVIEWS = 4

CATEGORY_LABELS: Dict[str, str] = {
    ItemCategory.TECH.value: "Technology",
    ItemCategory.BUSINESS.value: "Business",
    ItemCategory.DESIGN.value: "Design",
    ItemCategory.PRODUCTIVITY.value: "Productivity",
    ItemCategory.LEARNING.value: "Learning",
    ItemCategory.LIFESTYLE.value: "Lifestyle",
    ItemCategory.ENTERTAINMENT.value: "Entertainment",
    ItemCategory.NEWS.value: "News",
    ItemCategory.FINANCE.value: "Finance",
    ItemCategory.PHILOSOPHY.value: "Philosophy",
    ItemCategory.ECONOMICS.value: "Economics",
    ItemCategory.FASHION.value: "Fashion",
    ItemCategory.TRAVEL.value: "Travel",
    ItemCategory.OTHER.value: "Other",
}


def _source_counts(db: Session, user: User):
    return (
        db.query(Item.source, func.count(Item.id))
        .filter(
            Item.user_id == user.id,
            Item.status != ItemStatus.DELETED.value,
            Item.source.isnot(None),
        )
        .group_by(Item.source)
        .all()
    )


@router.get("/tags")
async def list_tags(
    q: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    sort_by: Literal["usage", "alphabetical", "recent"] = "usage",
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tags on the user's items with usage counts"""
    tags = TagService(db).list_user_tags(current_user.id, q=q, limit=limit, sort_by=sort_by)
    return {"ok": True, "data": {"tags": tags, "total": len(tags)}}


@router.get("/categories")
async def list_categories(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-category item counts with preview thumbnails"""
    rows = (
        db.query(Item.category, Item.image_url, Item.title)
        .filter(Item.user_id == current_user.id, Item.status != ItemStatus.DELETED.value)
        .order_by(Item.created_at.desc())
        .all()
    )

    grouped: Dict[str, dict] = {}
    for category, image_url, title in rows:
        entry = grouped.setdefault(category or ItemCategory.OTHER.value, {"count": 0, "thumbnails": [], "titles": []})
        entry["count"] += 1
        if image_url and len(entry["thumbnails"]) < MAX_CATEGORY_PREVIEWS:
            entry["thumbnails"].append(image_url)
        if len(entry["titles"]) < MAX_CATEGORY_PREVIEWS:
            entry["titles"].append(title or "Untitled")

    categories = [
        {"category": value, "label": label, **grouped[value]}
        for value, label in CATEGORY_LABELS.items()
        if value in grouped
    ]
    platforms = sorted(
        ({"platform": source, "count": count} for source, count in _source_counts(db, current_user)),
        key=lambda p: p["count"],
        reverse=True,
    )
    return {
        "ok": True,
        "data": {
            "categories": categories,
            "total_items": len(rows),
            "platforms": platforms,
        },
    }


@router.get("/platforms")
async def list_platforms(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Item counts per platform, with source variants merged"""
    platforms = consolidate_platforms(_source_counts(db, current_user))
    return {"ok": True, "data": [platform.model_dump() for platform in platforms]}
