"""
Health check endpoints
"""
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from tavlo.core.config import get_settings
from tavlo.core.database import get_db
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.item import Item
from tavlo.models.domain import Domain
from tavlo.models.gamification import Badge
from tavlo.utils.datetime_utils import utc_now, utc_now_iso

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(tags=["health"])

VERSION = "0.1.0"


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint

    Returns:
        dict: Health status
    """
    return {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "service": get_settings().app_name,
    }


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Detailed health check with component status

    Returns:
        dict: Detailed health status of all components
    """
    settings = get_settings()
    health_status = {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "service": settings.app_name,
        "version": VERSION,
        "environment": settings.app_env,
        "components": {}
    }

    overall_healthy = True

    # Check database
    try:
        db.execute(text("SELECT 1"))
        db.commit()
        health_status["components"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except Exception as e:
        overall_healthy = False
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
            "error": type(e).__name__
        }

    # Reference data is seeded by `python -m cli.maintenance seed`
    if overall_healthy:
        try:
            domain_count = db.query(Domain).count()
            badge_count = db.query(Badge).count()
            seeded = domain_count > 0 and badge_count > 0
            health_status["components"]["reference_data"] = {
                "status": "healthy" if seeded else "degraded",
                "message": "Domains and badges seeded" if seeded else "Run the seed command",
                "domains": domain_count,
                "badges": badge_count,
            }
        except Exception as e:
            health_status["components"]["reference_data"] = {
                "status": "error",
                "message": f"Failed to check reference data: {str(e)}",
                "error": type(e).__name__
            }

        try:
            since = utc_now() - timedelta(hours=24)
            items_last_day = db.query(Item).filter(Item.created_at >= since).count()
            health_status["components"]["ingestion"] = {
                "status": "healthy",
                "message": f"{items_last_day} items saved in the last 24 hours",
                "items_last_24h": items_last_day,
            }
        except Exception as e:
            health_status["components"]["ingestion"] = {
                "status": "error",
                "message": f"Failed to check ingestion: {str(e)}",
                "error": type(e).__name__
            }

    # Integrations are optional; missing keys only degrade the features using them
    integrations = {
        "llm": bool(settings.llm_api_key),
        "clerk": bool(settings.clerk_jwt_public_key),
        "clerk_webhooks": bool(settings.clerk_webhook_secret),
        "email_webhooks": bool(settings.resend_webhook_secret),
        "quick_add": bool(settings.quick_add_secret),
    }
    health_status["components"]["integrations"] = {
        "status": "healthy" if integrations["llm"] else "degraded",
        "configured": integrations,
    }

    if not overall_healthy:
        health_status["status"] = "unhealthy"
    elif any(comp.get("status") == "degraded" for comp in health_status["components"].values()):
        health_status["status"] = "degraded"

    return health_status
