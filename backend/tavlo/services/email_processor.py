"""
Inbound email ingestion

Newsletters forwarded to save+{user_id}@<inbound domain> arrive through the
Resend webhook and become Items. The item is saved before summarization so
that an LLM failure still leaves the email in the user's library.
"""
import base64
import re
import time
from typing import List, Optional, Union
from uuid import UUID

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tavlo.core.config import get_settings
from tavlo.core.llm_client import LLMClient
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.metrics import pipeline_duration_seconds, pipeline_runs_total
from tavlo.models.item import ImportSource, Item, ItemStatus
from tavlo.models.user import User
from tavlo.services.badge_service import BadgeService
from tavlo.services.domains import get_domain_for_content
from tavlo.services.extractor import truncate_content
from tavlo.services.pipeline import run_side_effect
from tavlo.services.streak_service import StreakService
from tavlo.services.summarizer import Summarizer
from tavlo.services.tag_service import TagService
from tavlo.services.xp_service import XPAction, XPService
from tavlo.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)

MIN_TEXT_CHARS = 100
MIN_CONTENT_CHARS = 50
MAX_EMAIL_CHARS = 10000
TRUNCATION_MARKER = "\n\n[Content truncated...]"

_RECIPIENT_USER_ID = re.compile(r"save\+([^@]+)@", re.IGNORECASE)
_SENDER_DOMAIN = re.compile(r"@([^>\s]+)")
_FORWARD_MARKER = re.compile(r"^-+\s*Forwarded message\s*-+$", re.IGNORECASE | re.MULTILINE)
_HEADER_LINES = re.compile(r"^(?:From|Date|Subject|To):.*$", re.IGNORECASE | re.MULTILINE)
_BLANK_LINES = re.compile(r"\n{3,}")


class EmailData(BaseModel):
    """email.received payload as sent by Resend"""
    to: Union[str, List[str]]
    # "from" is a keyword; populated through the alias
    sender: str = Field(alias="from")
    subject: str = ""
    html: Optional[str] = None
    text: Optional[str] = None
    message_id: Optional[str] = None
    email_id: Optional[str] = None
    created_at: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def to_address(self) -> str:
        if isinstance(self.to, list):
            return self.to[0] if self.to else ""
        return self.to


class EmailProcessResult(BaseModel):
    success: bool
    item_id: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None


def extract_user_id(address: str) -> Optional[UUID]:
    """save+{user id}@domain -> user id"""
    match = _RECIPIENT_USER_ID.search(address or "")
    if not match:
        return None
    try:
        return UUID(match.group(1))
    except ValueError:
        return None


def extract_sender_domain(sender: str) -> str:
    match = _SENDER_DOMAIN.search(sender or "")
    return match.group(1).lower() if match else "unknown"


def generate_message_id(email: EmailData) -> str:
    unique = f"{email.to_address}:{email.sender}:{email.subject}:{int(time.time() * 1000)}"
    encoded = base64.b64encode(unique.encode("utf-8")).decode("ascii")
    return f"<generated-{encoded}@{get_settings().email_domain}>"


def html_to_text(html: str) -> str:
    """
    Plain text from newsletter HTML

    Tracking pixels, footer blocks and unsubscribe links are dropped; other
    links keep their URL in brackets.
    """
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "head"]):
        element.decompose()
    for img in soup.find_all("img"):
        if img.get("width") == "1" or img.get("height") == "1":
            img.decompose()
    for element in soup.select(".footer, #footer"):
        element.decompose()
    for link in soup.find_all("a"):
        href = link.get("href") or ""
        if "unsubscribe" in href.lower():
            link.decompose()
            continue
        text = link.get_text(" ", strip=True)
        if href and not href.startswith("#") and href != text:
            link.replace_with(f"{text} [{href}]" if text else href)

    lines = [line.strip() for line in soup.get_text("\n").splitlines()]
    return "\n".join(lines)


def clean_email_text(text: str) -> str:
    cleaned = _FORWARD_MARKER.sub("", text)
    cleaned = _HEADER_LINES.sub("", cleaned)
    cleaned = _BLANK_LINES.sub("\n\n", cleaned).strip()
    if len(cleaned) > MAX_EMAIL_CHARS:
        cleaned = cleaned[:MAX_EMAIL_CHARS] + TRUNCATION_MARKER
    return cleaned


def extract_newsletter_text(email: EmailData) -> str:
    """Plain text if substantial, else converted HTML, else the subject"""
    if email.text and len(email.text.strip()) > MIN_TEXT_CHARS:
        return clean_email_text(email.text)
    if email.html:
        return clean_email_text(html_to_text(email.html))
    if email.text and email.text.strip():
        return clean_email_text(email.text)
    return email.subject


class EmailProcessor:
    """Turns inbound emails into summarized Items"""

    def __init__(
        self,
        db: Session,
        llm: Optional[LLMClient] = None,
        http: Optional[httpx.AsyncClient] = None,
        summarizer: Optional[Summarizer] = None,
    ):
        self.db = db
        self.http = http
        self.summarizer = summarizer or Summarizer(llm)
        self.settings = get_settings()

    async def fetch_email_content(self, email_id: Optional[str]) -> Optional[dict]:
        """Body of a received email from Resend's API, or None"""
        if not email_id:
            return None
        if not self.settings.resend_api_key:
            logger.error("RESEND_API_KEY not configured")
            return None

        url = f"{self.settings.resend_api_url.rstrip('/')}/emails/receiving/{email_id}"
        headers = {"Authorization": f"Bearer {self.settings.resend_api_key}"}
        try:
            if self.http is not None:
                response = await self.http.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.settings.fetch_timeout_seconds) as client:
                    response = await client.get(url, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch email from Resend: {e}", extra={"email_id": email_id})
            return None

        if not data.get("html") and not data.get("text"):
            logger.error("Email content is empty from Resend API", extra={"email_id": email_id})
            return None
        return {"html": data.get("html") or "", "text": data.get("text") or ""}

    def _fail(self, error: str, **extra) -> EmailProcessResult:
        pipeline_runs_total.labels(channel="email", status="rejected").inc()
        logger.warning(f"Email rejected: {error}", extra=extra)
        return EmailProcessResult(success=False, error=error)

    async def process_email_item(self, email: EmailData) -> EmailProcessResult:
        start_time = time.time()
        try:
            return await self._process(email)
        finally:
            pipeline_duration_seconds.labels(channel="email").observe(time.time() - start_time)

    async def _process(self, email: EmailData) -> EmailProcessResult:
        recipient = email.to_address
        user_id = extract_user_id(recipient)
        if user_id is None:
            return self._fail("Invalid recipient address", recipient=recipient)

        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return self._fail("User not found", user_id=str(user_id))

        external_id = email.message_id or generate_message_id(email)
        existing = self.db.query(Item).filter(
            Item.user_id == user_id,
            Item.import_source == ImportSource.EMAIL.value,
            Item.external_id == external_id,
        ).first()
        if existing is not None:
            logger.info("Duplicate email skipped", extra={"item_id": str(existing.id)})
            return EmailProcessResult(success=True, item_id=str(existing.id), message="Duplicate email")

        if not email.html and not email.text:
            fetched = await self.fetch_email_content(email.email_id)
            if fetched is None:
                return self._fail("Could not fetch email content", email_id=email.email_id)
            email.html = fetched["html"]
            email.text = fetched["text"]

        text = extract_newsletter_text(email)
        if not text or len(text.strip()) < MIN_CONTENT_CHARS:
            return self._fail("Email content too short", length=len(text or ""))

        sender_domain = extract_sender_domain(email.sender)
        url = f"https://{sender_domain}"

        try:
            item = Item(
                user_id=user_id,
                url=url,
                source=sender_domain,
                import_source=ImportSource.EMAIL.value,
                external_id=external_id,
                title=email.subject or sender_domain,
                raw_content=text,
                status=ItemStatus.NEW.value,
                tags=[],
                created_at=utc_now(),
            )
            self.db.add(item)
            self.db.commit()
            self.db.refresh(item)
        except Exception as e:
            self.db.rollback()
            pipeline_runs_total.labels(channel="email", status="failed").inc()
            logger.error(f"Error saving email item: {e}", exc_info=True)
            raise

        item_id = item.id
        log_extra = {"item_id": str(item_id), "user_id": str(user_id)}
        logger.info(f"Email item created from {sender_domain}", extra=log_extra)

        xp = XPService(self.db)
        run_side_effect(self.db, "save_xp", lambda: xp.award_xp(
            user_id, XPAction.SAVE_ITEM, item_id=item_id, metadata={"url": url, "source": sender_domain},
        ), **log_extra)

        summary = await self.summarizer.summarize(
            content=truncate_content(text, self.settings.max_content_chars),
            url=url,
            source=sender_domain,
            title=email.subject,
            note=f"Newsletter/Email: {email.subject}",
            existing_tags=TagService(self.db).get_top_tags(self.settings.llm_existing_tags_limit),
        )
        if summary.is_fallback:
            pipeline_runs_total.labels(channel="email", status="partial").inc()
            logger.warning("AI processing failed for email; item kept", extra=log_extra)
            return EmailProcessResult(
                success=True,
                item_id=str(item_id),
                message="Email saved but AI processing failed",
            )

        domain_id = get_domain_for_content(self.db, summary.category, summary.tags)
        try:
            item = self.db.query(Item).filter(Item.id == item_id).first()
            item.title = summary.title
            item.summary = "\n".join(summary.summary)
            item.type = summary.type
            item.category = summary.category
            item.domain_id = domain_id
            TagService(self.db).assign_tags_to_item(item_id, summary.tags)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating email item: {e}", exc_info=True, extra=log_extra)
            return EmailProcessResult(
                success=True,
                item_id=str(item_id),
                message="Email saved but AI processing failed",
            )

        run_side_effect(self.db, "process_xp", lambda: xp.award_xp(
            user_id,
            XPAction.PROCESS_ITEM,
            domain_id=domain_id,
            item_id=item_id,
            metadata={"category": summary.category, "tags": summary.tags, "type": summary.type},
        ), **log_extra)
        run_side_effect(self.db, "streak", lambda: StreakService(self.db).update_streak(user_id), **log_extra)
        run_side_effect(self.db, "badges", lambda: BadgeService(self.db).check_all_badges(user_id), **log_extra)

        pipeline_runs_total.labels(channel="email", status="success").inc()
        return EmailProcessResult(success=True, item_id=str(item_id), message="Email processed")
