"""
API routes for badges
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tavlo.core.auth import get_current_user
from tavlo.core.database import get_db
from tavlo.models.user import User
from tavlo.services.badge_service import BadgeService

router = APIRouter(prefix="/api/badges", tags=["badges"])


class MarkSeenRequest(BaseModel):
    """Request model for acknowledging badges"""
    badge_ids: List[UUID] = Field(..., min_length=1)


@router.get("")
async def list_badges(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Every badge, with earned and seen state for the current user"""
    badge_service = BadgeService(db)
    earned = {badge["id"]: badge for badge in badge_service.get_user_badges(current_user.id)}

    badges = []
    for badge in badge_service.get_all_badges():
        user_badge = earned.get(badge["id"])
        badges.append({
            **badge,
            "earned": user_badge is not None,
            "earned_at": user_badge["earned_at"] if user_badge else None,
            "seen_at": user_badge["seen_at"] if user_badge else None,
        })

    unseen = sum(1 for badge in earned.values() if badge["seen_at"] is None)
    return {
        "ok": True,
        "data": {
            "badges": badges,
            "earned_count": len(earned),
            "total_count": len(badges),
            "unseen_count": unseen,
        },
    }


@router.post("/seen")
async def mark_seen(
    request: MarkSeenRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark earned badges as seen"""
    count = BadgeService(db).mark_badges_seen(current_user.id, request.badge_ids)
    return {"ok": True, "data": {"marked_count": count}}
