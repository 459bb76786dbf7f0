"""
Inbound webhooks from Clerk (user sync) and Resend (forwarded email)

Both providers sign deliveries with Svix; the raw body is verified before
anything is parsed.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from svix.webhooks import Webhook, WebhookVerificationError

from tavlo.core.config import get_settings
from tavlo.core.database import get_db
from tavlo.core.llm_client import LLMClient, get_llm_client
from tavlo.core.logging_config import LoggingConfig
from tavlo.services.email_processor import EmailData, EmailProcessor
from tavlo.services.user_service import delete_user, upsert_user

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
logger = LoggingConfig.get_logger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def get_email_processor(
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
) -> EmailProcessor:
    return EmailProcessor(db, llm=llm)


async def verify_svix_request(request: Request, secret: Optional[str], source: str):
    """
    Verified event payload, or a plain-text error response

    Returns:
        (event, None) on success, (None, response) otherwise
    """
    if not secret:
        logger.error(f"{source} webhook secret not configured")
        return None, PlainTextResponse("Webhook secret not configured", status_code=500)

    headers = {name: request.headers.get(name) for name in SVIX_HEADERS}
    if not all(headers.values()):
        logger.warning(f"Missing svix headers on {source} webhook")
        return None, PlainTextResponse("Missing svix headers", status_code=400)

    body = await request.body()
    try:
        event = Webhook(secret).verify(body, headers)
    except WebhookVerificationError as e:
        logger.warning(f"{source} webhook verification failed: {e}")
        return None, PlainTextResponse("Webhook verification failed", status_code=400)
    return event, None


def _primary_email(data: Dict[str, Any]) -> Optional[str]:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    return addresses[0].get("email_address") if addresses else None


@router.post("/clerk")
async def clerk_webhook(request: Request, db: Session = Depends(get_db)):
    """Mirror Clerk user lifecycle events into the users table"""
    event, error_response = await verify_svix_request(request, get_settings().clerk_webhook_secret, "Clerk")
    if error_response is not None:
        return error_response

    event_type = event.get("type")
    data = event.get("data") or {}
    clerk_id = data.get("id")

    if event_type in ("user.created", "user.updated") and clerk_id:
        try:
            upsert_user(db, clerk_id, _primary_email(data))
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to sync user: {e}", exc_info=True, extra={"clerk_id": clerk_id})
            return PlainTextResponse("Database error", status_code=500)
        logger.info(f"User synced from {event_type}", extra={"clerk_id": clerk_id})
    elif event_type == "user.deleted" and clerk_id:
        try:
            delete_user(db, clerk_id)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete user: {e}", exc_info=True, extra={"clerk_id": clerk_id})

    return PlainTextResponse("OK", status_code=200)


@router.post("/email")
async def email_webhook(
    request: Request,
    processor: EmailProcessor = Depends(get_email_processor),
):
    """
    Resend inbound email

    Always answers 200 once the signature checks out, so processing
    failures are not retried by the provider.
    """
    event, error_response = await verify_svix_request(request, get_settings().resend_webhook_secret, "Resend")
    if error_response is not None:
        return error_response

    event_type = event.get("type")
    if event_type != "email.received":
        logger.info(f"Ignoring webhook event type: {event_type}")
        return PlainTextResponse("OK", status_code=200)

    try:
        email = EmailData.model_validate(event.get("data") or {})
        result = await processor.process_email_item(email)
        logger.info(
            f"Email webhook processed: {result.message or result.error}",
            extra={"success": result.success, "item_id": result.item_id},
        )
    except ValidationError as e:
        logger.error(f"Malformed email payload: {e}")
    except Exception as e:
        logger.error(f"Email processing failed: {e}", exc_info=True)

    return PlainTextResponse("OK", status_code=200)
