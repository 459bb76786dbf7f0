"""
Quick add from mobile shortcuts

Authenticated with a shared bearer secret instead of a user session; items
are saved for the account owner (the oldest user).
"""
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tavlo.api.routes.items import PIPELINE_ERRORS, get_pipeline_service
from tavlo.core.auth import security
from tavlo.core.config import get_settings
from tavlo.core.database import get_db
from tavlo.core.logging_config import LoggingConfig
from tavlo.services.pipeline import PipelineService
from tavlo.services.user_service import get_first_user

router = APIRouter(prefix="/api/quick-add", tags=["quick-add"])
logger = LoggingConfig.get_logger(__name__)


class QuickAddRequest(BaseModel):
    url: str = Field(..., min_length=1)
    note: Optional[str] = Field(default=None, max_length=500)


def _valid_secret(credentials: Optional[HTTPAuthorizationCredentials]) -> bool:
    secret = get_settings().quick_add_secret
    if not secret or not credentials:
        return False
    return hmac.compare_digest(credentials.credentials.encode(), secret.encode())


@router.post("")
async def quick_add(
    request: QuickAddRequest,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    pipeline: PipelineService = Depends(get_pipeline_service),
):
    if not _valid_secret(credentials):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"ok": False, "error": "Invalid or missing authorization"},
        )

    user = get_first_user(db)
    if user is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"ok": False, "error": "No user found. Please sign in to the web app first."},
        )

    try:
        result = await pipeline.process_item(request.url, request.note, user.id)
    except PIPELINE_ERRORS as e:
        logger.warning(f"Quick add failed: {e}", extra={"url": request.url})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"ok": False, "error": str(e)},
        )

    return {
        "ok": True,
        "item_id": str(result.item.id),
        "title": result.item.title,
        "source": result.item.source,
    }
