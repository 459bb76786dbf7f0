"""
API routes for the current user: stats, streak, activity, focus areas and timezone
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tavlo.core.auth import get_current_user
from tavlo.core.database import get_db
from tavlo.models.user import User
from tavlo.services.activity_service import ActivityService
from tavlo.services.streak_service import StreakService
from tavlo.services.xp_service import XPService

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/stats")
async def get_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Overall XP, level progress, per-domain stats and recent XP events"""
    xp_service = XPService(db)
    return {
        "ok": True,
        "data": {
            "stats": xp_service.get_user_stats(current_user.id),
            "domains": xp_service.get_user_domain_stats(current_user.id),
            "recent_activity": [event.to_dict() for event in xp_service.get_recent_xp_events(current_user.id, 10)],
        },
    }


@router.get("/streak")
async def get_streak(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    streak = StreakService(db).get_user_streak(current_user.id)
    today = ActivityService(db).get_today_activity_status(current_user.id)
    return {"ok": True, "data": {**streak, "has_activity_today": today["has_activity_today"]}}


@router.get("/activity")
async def get_activity(
    days: int = Query(default=90, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active days for the streak calendar"""
    activity_service = ActivityService(db)
    return {
        "ok": True,
        "data": {
            "dates": activity_service.get_activity_history(current_user.id, days=days),
            "today": activity_service.get_today_activity_status(current_user.id),
        },
    }


def _focus_area_dict(focus_area) -> dict:
    return {
        "id": str(focus_area.id),
        "priority": focus_area.priority,
        "domain": focus_area.domain.to_dict() if focus_area.domain else None,
    }


class FocusAreasRequest(BaseModel):
    domain_ids: List[UUID] = Field(..., min_length=1, max_length=3)


class TimezoneRequest(BaseModel):
    timezone: str = Field(..., min_length=1)


@router.get("/focus-areas")
async def get_focus_areas(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    focus_areas = XPService(db).get_focus_areas(current_user.id)
    return {"ok": True, "data": {"focus_areas": [_focus_area_dict(f) for f in focus_areas]}}


@router.api_route("/focus-areas", methods=["PUT", "POST"])
async def set_focus_areas(
    request: FocusAreasRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Replace focus areas (1-3 domains, highest priority first)"""
    focus_areas = XPService(db).set_focus_areas(current_user.id, request.domain_ids)
    return {"ok": True, "data": {"focus_areas": [_focus_area_dict(f) for f in focus_areas]}}


@router.api_route("/timezone", methods=["PATCH", "POST"])
async def update_timezone(
    request: TimezoneRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Set the IANA timezone streak days are counted in"""
    stats = StreakService(db).update_timezone(current_user.id, request.timezone.strip())
    return {"ok": True, "data": {"timezone": stats.timezone}}
