"""
API routes for saved items
"""
import math
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from tavlo.core.auth import get_current_user, rate_limited
from tavlo.core.database import get_db
from tavlo.core.errors import (ContentValidationError, InvalidURLError,
                               LLMError, NotFoundError, PermissionDeniedError)
from tavlo.core.llm_client import LLMClient, get_llm_client
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.item import ImportSource, Item, ItemStatus
from tavlo.models.tag import ItemTag, Tag
from tavlo.models.user import User
from tavlo.services.activity_service import ActivityService, StreakActivity
from tavlo.services.extractor import ExtractedContent
from tavlo.services.pipeline import PipelineService
from tavlo.services.platforms import (PLATFORM_CONFIG, get_platform_domains,
                                      normalize_domain,
                                      normalize_platform_slug)
from tavlo.services.tag_service import TagService, normalize_tag
from tavlo.services.xp_service import XPService
from tavlo.utils.datetime_utils import utc_now

router = APIRouter(prefix="/api/items", tags=["items"])
logger = LoggingConfig.get_logger(__name__)

PIPELINE_ERRORS = (InvalidURLError, ContentValidationError, LLMError)


class CreateItemRequest(BaseModel):
    """Request model for saving a URL"""
    url: str = Field(..., min_length=1, description="URL to save")
    note: Optional[str] = Field(default=None, max_length=500)
    # Content already extracted by the browser extension; skips fetching
    pre_extracted: Optional[ExtractedContent] = None


class UpdateItemRequest(BaseModel):
    """Request model for updating an item"""
    status: Optional[Literal["new", "reviewed", "pinned", "deleted"]] = None
    tags: Optional[List[str]] = None
    note: Optional[str] = Field(default=None, max_length=500)


def get_pipeline_service(
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
) -> PipelineService:
    return PipelineService(db, llm=llm)


def get_owned_item(db: Session, item_id: UUID, user: User) -> Item:
    """Item by id; 404 if missing, 403 if another user owns it"""
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise NotFoundError("Item not found")
    if item.user_id != user.id:
        raise PermissionDeniedError("Forbidden")
    return item


def _platform_filter(db: Session, user_id: UUID, platform: str):
    """SQL condition selecting items from a platform slug or a normalized source name"""
    slug = normalize_platform_slug(platform)
    if slug == "other":
        known = [domain for config in PLATFORM_CONFIG for domain in config.domains]
        return or_(Item.source.is_(None), ~or_(*(Item.source.ilike(f"%{domain}%") for domain in known)))
    if slug:
        conditions = [Item.source.ilike(f"%{domain}%") for domain in get_platform_domains(slug)]
        if slug == "newsletter":
            conditions.append(Item.import_source == ImportSource.EMAIL.value)
        return or_(*conditions)

    # Not a configured slug: match every raw source that normalizes to it
    sources = [
        row[0]
        for row in db.query(Item.source).filter(Item.user_id == user_id, Item.source.isnot(None)).distinct()
        if normalize_domain(row[0]) == platform.lower()
    ]
    return Item.source.in_(sources)


@router.get("")
async def list_items(
    q: Optional[str] = None,
    item_status: Optional[str] = Query(default=None, alias="status"),
    tag: Optional[List[str]] = Query(default=None),
    category: Optional[List[str]] = Query(default=None),
    author: Optional[List[str]] = Query(default=None),
    platform: Optional[List[str]] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=16, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    List the current user's items, newest first

    tag, category, author and platform may be repeated; an item matches
    when it matches any of the given values.
    """
    query = db.query(Item).filter(Item.user_id == current_user.id)

    if item_status and item_status != "all":
        query = query.filter(Item.status == item_status)
    elif not item_status:
        query = query.filter(Item.status != ItemStatus.DELETED.value)

    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(
            Item.title.ilike(pattern),
            Item.summary.ilike(pattern),
            Item.note.ilike(pattern),
        ))
    if tag:
        tagged = (
            db.query(ItemTag.item_id)
            .join(Tag, Tag.id == ItemTag.tag_id)
            .filter(or_(Tag.display_name.in_(tag), Tag.name.in_([normalize_tag(t) for t in tag])))
        )
        query = query.filter(Item.id.in_(tagged))
    if category:
        query = query.filter(Item.category.in_(category))
    if author:
        query = query.filter(Item.author.in_(author))
    if platform:
        query = query.filter(or_(*(_platform_filter(db, current_user.id, slug) for slug in platform)))

    total = query.count()
    items = (
        query.order_by(Item.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    xp_service = XPService(db)
    item_xp = xp_service.get_item_xp(current_user.id, [item.id for item in items])
    focus_domains = xp_service.get_focus_domain_ids(current_user.id)

    data = []
    for item in items:
        xp = item_xp.get(item.id, {"total": 0, "breakdown": {}})
        data.append({
            **item.to_dict(),
            "xp_earned": xp["total"],
            "xp_breakdown": xp["breakdown"],
            "is_in_focus_area": item.domain_id in focus_domains if item.domain_id else False,
        })

    total_pages = math.ceil(total / limit) if total else 0
    return {
        "ok": True,
        "data": data,
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
            "has_more": page < total_pages,
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(
    request: CreateItemRequest,
    current_user: User = Depends(rate_limited),
    pipeline: PipelineService = Depends(get_pipeline_service),
):
    """Save a URL: extract, summarize, tag and award XP"""
    try:
        result = await pipeline.process_item(
            request.url, request.note, current_user.id, pre_extracted=request.pre_extracted,
        )
    except PIPELINE_ERRORS as e:
        logger.warning(f"Failed to process item: {e}", extra={"url": request.url})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"ok": False, "error": str(e)},
        )

    return {
        "ok": True,
        "data": result.item.to_dict(),
        "new_badges": [badge.model_dump(mode="json") for badge in result.new_badges],
    }


@router.get("/{item_id}")
async def get_item(
    item_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get item by ID"""
    item = get_owned_item(db, item_id, current_user)
    return {"ok": True, "data": item.to_dict()}


@router.patch("/{item_id}")
async def update_item(
    item_id: UUID,
    request: UpdateItemRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update status, tags or note of an item"""
    item = get_owned_item(db, item_id, current_user)
    changes = request.model_dump(exclude_unset=True)

    try:
        if changes.get("status") is not None:
            item.status = changes["status"]
            if item.status in (ItemStatus.REVIEWED.value, ItemStatus.PINNED.value):
                item.reviewed_at = utc_now()
        if changes.get("tags") is not None:
            TagService(db).assign_tags_to_item(item.id, changes["tags"])
        if "note" in changes:
            item.note = changes["note"].strip() if changes["note"] else None
        db.commit()
        db.refresh(item)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating item: {e}", exc_info=True, extra={"item_id": str(item_id)})
        raise

    activity = StreakActivity.REVIEW_ITEM if changes.get("status") is not None else StreakActivity.UPDATE_ITEM
    ActivityService(db).track_activity(current_user.id, activity, {"item_id": str(item_id)})

    db.refresh(item)
    return {"ok": True, "data": item.to_dict()}
