"""
API routes for knowledge domains
"""
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from tavlo.core.database import get_db
from tavlo.services.domains import list_domains

router = APIRouter(prefix="/api/domains", tags=["domains"])


@router.get("")
async def get_domains(response: Response, db: Session = Depends(get_db)):
    """All domains in display order; public"""
    response.headers["Cache-Control"] = "public, max-age=3600, stale-while-revalidate=86400"
    return {"ok": True, "data": {"domains": [domain.to_dict() for domain in list_domains(db)]}}
