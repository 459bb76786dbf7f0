"""
Ingestion pipeline for saved URLs

extract -> summarize -> validate -> persist (item + tags) -> XP, streak, badges

Nothing is persisted when extraction or summarization produce unusable
content. Once the item is saved, each side effect runs on its own and a
failure is logged without failing the request.
"""
import re
import time
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy.orm import Session

from tavlo.core.config import get_settings
from tavlo.core.errors import ContentValidationError, InvalidURLError
from tavlo.core.llm_client import LLMClient
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.metrics import (pipeline_duration_seconds, pipeline_runs_total,
                                side_effect_failures_total)
from tavlo.models.item import Item, ItemStatus
from tavlo.models.user import User
from tavlo.services.activity_service import ActivityService, StreakActivity
from tavlo.services.badge_service import AwardedBadge, BadgeService
from tavlo.services.content_validator import validate_item_data
from tavlo.services.domains import get_domain_for_content
from tavlo.services.extractor import (ContentExtractor, ExtractedContent,
                                      truncate_content)
from tavlo.services.summarizer import Summarizer, Summary
from tavlo.services.tag_service import TagService
from tavlo.services.url_normalizer import is_valid_url, normalize_url
from tavlo.services.user_service import get_or_create_user
from tavlo.services.xp_service import XPAction, XPService

logger = LoggingConfig.get_logger(__name__)

VISION_MAX_CONTENT_CHARS = 100
VISION_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
# These CDNs refuse the vision model's fetcher
VISION_BLOCKED_HOSTS = ("cdninstagram.com", "fbcdn.net")

_INSTAGRAM_THUMB_SIZE = re.compile(r"s150x150", re.IGNORECASE)
_INSTAGRAM_PROFILE_IMAGE = re.compile(r"t51\.2885-19|profile_pic", re.IGNORECASE)


class ProcessResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    item: Item
    success: bool = True
    new_badges: List[AwardedBadge] = []


def upsize_instagram_image(image_url: Optional[str], source: Optional[str]) -> Optional[str]:
    """Swap Instagram's 150px thumbnail for the 1080px rendition"""
    if image_url and source and "instagram" in source.lower():
        return _INSTAGRAM_THUMB_SIZE.sub("s1080x1080", image_url)
    return image_url


def prepare_vision_image(image_url: Optional[str], source: Optional[str]) -> Optional[str]:
    """
    Image URL to send to the vision model, or None when the image is unusable

    Instagram thumbnails are upsized and profile pictures skipped.
    """
    image_url = upsize_instagram_image(image_url, source)
    if not image_url:
        return None
    if source and "instagram" in source.lower() and _INSTAGRAM_PROFILE_IMAGE.search(image_url):
        return None
    lowered = image_url.lower()
    if not any(ext in lowered for ext in VISION_IMAGE_EXTENSIONS):
        return None
    if any(host in lowered for host in VISION_BLOCKED_HOSTS):
        return None
    return image_url


def run_side_effect(db: Session, name: str, func: Callable[[], Any], **log_extra) -> Any:
    """Run a post-save side effect; failures are logged, counted and swallowed"""
    try:
        return func()
    except Exception as e:
        db.rollback()
        side_effect_failures_total.labels(effect=name).inc()
        logger.error(f"Side effect {name} failed: {e}", exc_info=True, extra=log_extra)
        return None


class PipelineService:
    """Processes a URL into a saved, summarized, tagged Item"""

    def __init__(
        self,
        db: Session,
        extractor: Optional[ContentExtractor] = None,
        llm: Optional[LLMClient] = None,
        summarizer: Optional[Summarizer] = None,
    ):
        self.db = db
        self.extractor = extractor or ContentExtractor()
        self.summarizer = summarizer or Summarizer(llm)
        self.tags = TagService(db)
        self.xp = XPService(db)
        self.activity = ActivityService(db)
        self.badges = BadgeService(db)
        self.settings = get_settings()

    async def _summarize(self, extracted: ExtractedContent, content: str, url: str, note: Optional[str]) -> Summary:
        existing_tags = self.tags.get_top_tags(self.settings.llm_existing_tags_limit)

        extracted.image_url = upsize_instagram_image(extracted.image_url, extracted.source)
        image_url = prepare_vision_image(extracted.image_url, extracted.source)

        if len(content) < VISION_MAX_CONTENT_CHARS and image_url:
            logger.info("Using vision model for image analysis", extra={"url": url})
            summary = await self.summarizer.summarize_image(
                image_url=image_url,
                url=url,
                source=extracted.source,
                title=extracted.title,
                note=note,
                text_content=content,
                existing_tags=existing_tags,
            )
            if not summary.is_fallback:
                return summary
            logger.warning("Vision summary unavailable, falling back to text", extra={"url": url})

        return await self.summarizer.summarize(
            content=content,
            url=url,
            source=extracted.source,
            title=extracted.title,
            note=note,
            existing_tags=existing_tags,
        )

    async def process_item(
        self,
        url: str,
        note: Optional[str],
        user_id: UUID,
        pre_extracted: Optional[Union[ExtractedContent, Dict[str, Any]]] = None,
    ) -> ProcessResult:
        """
        Run the full pipeline for one URL

        Raises:
            InvalidURLError: url is not an absolute http(s) URL
            ContentValidationError: extraction or summary is not usable
        """
        if not is_valid_url(url):
            pipeline_runs_total.labels(channel="url", status="rejected").inc()
            raise InvalidURLError("Invalid URL format")
        url = normalize_url(url.strip())
        note = note.strip() if note and note.strip() else None

        start_time = time.time()
        try:
            if pre_extracted is None:
                logger.info("Extracting content", extra={"url": url})
                extracted = await self.extractor.extract(url)
            elif isinstance(pre_extracted, dict):
                try:
                    extracted = ExtractedContent.model_validate(
                        {key: value for key, value in pre_extracted.items() if value is not None}
                    )
                except ValidationError as e:
                    raise ContentValidationError("Invalid pre-extracted content", reason="pre_extracted") from e
            else:
                extracted = pre_extracted
            if not extracted.source:
                extracted.source = urlsplit(url).hostname or "unknown"

            content = truncate_content(extracted.content or "", self.settings.max_content_chars)
            summary = await self._summarize(extracted, content, url, note)

            validation = validate_item_data(content, extracted.author, summary.summary, summary.tags)
            if not validation.is_valid:
                logger.warning(
                    f"Content validation failed: {validation.error}",
                    extra={"url": url, "reason": validation.reason},
                )
                raise ContentValidationError(
                    validation.error or "Content validation failed for unknown reason",
                    reason=validation.reason,
                )

            if "reddit" in extracted.source.lower() and extracted.title:
                summary.title = extracted.title

            domain_id = get_domain_for_content(self.db, summary.category, summary.tags)
            item = self._save_item(url, note, user_id, extracted, content, summary, domain_id)
        except ContentValidationError:
            pipeline_runs_total.labels(channel="url", status="rejected").inc()
            raise
        except Exception:
            pipeline_runs_total.labels(channel="url", status="failed").inc()
            raise
        finally:
            pipeline_duration_seconds.labels(channel="url").observe(time.time() - start_time)

        new_badges = self._run_side_effects(item, summary, extracted.source, domain_id)
        pipeline_runs_total.labels(channel="url", status="success").inc()
        logger.info(
            "Item processed",
            extra={"item_id": str(item.id), "user_id": str(user_id), "new_badges": len(new_badges)},
        )
        return ProcessResult(item=item, success=True, new_badges=new_badges)

    def _save_item(
        self,
        url: str,
        note: Optional[str],
        user_id: UUID,
        extracted: ExtractedContent,
        content: str,
        summary: Summary,
        domain_id: Optional[UUID],
    ) -> Item:
        """Create the item and its tag links in one transaction"""
        try:
            item = Item(
                user_id=user_id,
                url=url,
                note=note,
                source=extracted.source,
                status=ItemStatus.NEW.value,
                title=summary.title,
                summary="\n".join(summary.summary),
                tags=summary.tags,
                author=extracted.author or None,
                type=summary.type,
                category=summary.category,
                raw_content=content,
                image_url=extracted.image_url,
                embed_html=extracted.embed_html,
                domain_id=domain_id,
            )
            self.db.add(item)
            self.db.flush()
            self.tags.assign_tags_to_item(item.id, summary.tags)
            self.db.commit()
            self.db.refresh(item)
            return item
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error saving item: {e}", exc_info=True, extra={"url": url})
            raise

    def _run_side_effects(
        self,
        item: Item,
        summary: Summary,
        source: str,
        domain_id: Optional[UUID],
    ) -> List[AwardedBadge]:
        user_id = item.user_id
        item_id = item.id
        log_extra = {"item_id": str(item_id), "user_id": str(user_id)}

        run_side_effect(self.db, "save_xp", lambda: self.xp.award_xp(
            user_id,
            XPAction.SAVE_ITEM,
            domain_id=domain_id,
            item_id=item_id,
            metadata={"url": item.url, "source": source},
        ), **log_extra)
        run_side_effect(self.db, "save_activity", lambda: self.activity.track_activity(
            user_id, StreakActivity.SAVE_ITEM, {"item_id": str(item_id)},
        ), **log_extra)
        run_side_effect(self.db, "process_xp", lambda: self.xp.award_xp(
            user_id,
            XPAction.PROCESS_ITEM,
            domain_id=domain_id,
            item_id=item_id,
            metadata={"category": summary.category, "tags": summary.tags, "type": summary.type},
        ), **log_extra)
        run_side_effect(self.db, "process_activity", lambda: self.activity.track_activity(
            user_id, StreakActivity.PROCESS_ITEM, {"item_id": str(item_id)},
        ), **log_extra)
        new_badges = run_side_effect(
            self.db, "badges", lambda: self.badges.check_all_badges(user_id), **log_extra
        )
        self.db.refresh(item)
        return new_badges or []

    def get_or_create_user(self, clerk_id: str, email: Optional[str] = None) -> User:
        return get_or_create_user(self.db, clerk_id, email)
