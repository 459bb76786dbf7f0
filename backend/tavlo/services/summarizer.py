"""
LLM summarization of extracted text and images
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from tavlo.core.errors import LLMError
from tavlo.core.llm_client import LLMClient, TaskType, get_llm_client
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.item import ItemCategory, ItemType
from tavlo.services.tag_service import clean_tags

logger = LoggingConfig.get_logger(__name__)

CATEGORY_DESCRIPTIONS = [
    ("tech", "Technology, programming, software, AI, web development, gadgets"),
    ("business", "Business, entrepreneurship, startups, management"),
    ("design", "Design, UI/UX, graphics, creativity, art, aesthetics"),
    ("productivity", "Productivity, tools, workflows, habits, time management"),
    ("learning", "Education, tutorials, courses, skills, knowledge"),
    ("lifestyle", "Health, fitness, food, relationships, personal development"),
    ("entertainment", "Movies, music, games, sports, fun, humor"),
    ("news", "Current events, politics, world news, trending topics"),
    ("finance", "Personal finance, investing, markets, money"),
    ("philosophy", "Philosophy, ideas, ethics, mental models"),
    ("economics", "Economics, policy, macro trends"),
    ("fashion", "Fashion, style, clothing, beauty"),
    ("travel", "Travel, destinations, trips, places"),
    ("other", "Anything that doesn't fit the above categories"),
]
_CATEGORY_LIST = "\n".join(f'   - "{name}" - {description}' for name, description in CATEGORY_DESCRIPTIONS)

SYSTEM_PROMPT_BASE = f"""You are a content analyzer for a personal knowledge management system.

Given a piece of content from social media or the web, analyze it and return a JSON response with:

1. "title" - A clean, concise title (max 80 characters)
2. "summary" - An array of 3-7 bullet points capturing the key ideas
3. "tags" - An array of 3-8 lowercase tags/categories that describe the content
4. "type" - Classify as one of:
   - "learn" - Educational content, knowledge, insights
   - "do" - Actionable content like tutorials, checklists, recipes, workouts
   - "reference" - Stable information to look up later (links, resources, tools)
5. "category" - Classify into ONE of these categories:
{_CATEGORY_LIST}

Rules:
- Be concise but preserve key insights
- Tags should be single words or short phrases, lowercase
- Summary bullets should be complete sentences
- Focus on extracting the actual value, not meta-commentary
- IMPORTANT: If the extracted content is limited but a "User Note" is provided, use the user's note as the PRIMARY context for generating the summary and tags. The user's note describes what the content is about.
- Category should be the SINGLE most relevant category for the content

Respond ONLY with valid JSON, no markdown or explanation."""

VISION_SYSTEM_PROMPT_BASE = f"""You are a content analyzer for a personal knowledge management system.

You will be shown an image (usually from social media like Instagram). Analyze the image and extract all valuable information from it.

If the image contains:
- Infographics: Extract all data points, statistics, and key insights
- Charts/Graphs: Describe trends, numbers, and conclusions
- Text overlays: Read and include all text visible in the image
- Diagrams: Explain the flow or structure shown
- Screenshots: Extract the relevant information displayed

Return a JSON response with:

1. "title" - A clean, concise title describing the image content (max 80 characters)
2. "summary" - An array of 3-7 bullet points capturing ALL key information from the image
3. "tags" - An array of 3-8 lowercase tags/categories
4. "type" - Classify as:
   - "learn" - Educational content, knowledge, insights
   - "do" - Actionable content like tutorials, checklists
   - "reference" - Information to look up later
5. "category" - Classify into ONE of these categories:
{_CATEGORY_LIST}

Rules:
- Extract ALL text and data visible in the image
- Be thorough - don't miss any numbers or facts
- Tags should be lowercase single words or short phrases
- Summary bullets should be complete sentences with specific details
- Category should be the SINGLE most relevant category

Respond ONLY with valid JSON, no markdown or explanation."""

EXISTING_TAGS_SECTION = """

EXISTING TAGS IN THE SYSTEM (prefer using these when applicable):
{tags}

When selecting tags, PRIORITIZE tags from this list if they match the content. Only create new tags if none of the existing tags are suitable."""

MIN_CONTENT_CHARS = 50
MAX_TITLE_CHARS = 80

SHORT_CONTENT_SUMMARY = "Content could not be extracted from this URL."
FAILED_SUMMARY = "Summarization failed. Original content is preserved."
UNAVAILABLE_SUMMARY = "Summary unavailable."
IMAGE_ANALYZED_SUMMARY = "Image analyzed."
IMAGE_FAILED_SUMMARY = "Image could not be analyzed. View the original post for details."

_VALID_TYPES = {t.value for t in ItemType}
_VALID_CATEGORIES = {c.value for c in ItemCategory}


class Summary(BaseModel):
    """Structured summarizer output"""
    title: str
    summary: List[str]
    tags: List[str] = Field(default_factory=list)
    type: str = ItemType.REFERENCE.value
    category: str = ItemCategory.OTHER.value
    # True when this is a canned fallback rather than model output
    is_fallback: bool = False


def build_system_prompt(base: str, existing_tags: Optional[List[str]]) -> str:
    if not existing_tags:
        return base
    return base + EXISTING_TAGS_SECTION.format(tags=", ".join(existing_tags))


def source_tag(source: str) -> str:
    """'www.reddit.com' -> 'reddit'"""
    return (source or "").replace("www.", "", 1).split(".")[0]


def _clamp_type(value: Any) -> str:
    return value if isinstance(value, str) and value in _VALID_TYPES else ItemType.REFERENCE.value


def _clamp_category(value: Any) -> str:
    return value if isinstance(value, str) and value in _VALID_CATEGORIES else ItemCategory.OTHER.value


def _parse_summary(parsed: Dict[str, Any], default_title: str, default_bullet: str) -> Summary:
    title = parsed.get("title")
    bullets = parsed.get("summary")
    tags = parsed.get("tags")

    # Anything but a list of bullets (string, object, number) is treated as missing
    bullets = [str(b).strip() for b in bullets if str(b).strip()] if isinstance(bullets, list) else []
    if not bullets:
        bullets = [default_bullet]

    return Summary(
        title=(title.strip() if isinstance(title, str) and title.strip() else default_title)[:MAX_TITLE_CHARS],
        summary=bullets,
        tags=clean_tags(tags) if isinstance(tags, list) else [],
        type=_clamp_type(parsed.get("type")),
        category=_clamp_category(parsed.get("category")),
    )


class Summarizer:
    """Turns extracted content into title, bullets, tags, type and category"""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or get_llm_client()

    async def summarize(
        self,
        content: str,
        url: str,
        source: str,
        title: Optional[str] = None,
        note: Optional[str] = None,
        existing_tags: Optional[List[str]] = None,
    ) -> Summary:
        """
        Summarize text content.

        Never raises: short content or LLM failures produce a fallback
        Summary with is_fallback set.
        """
        note = (note or "").strip()
        if len((content or "").strip()) < MIN_CONTENT_CHARS and not note:
            logger.info("Content too short to summarize", extra={"url": url})
            return Summary(
                title=title or url,
                summary=[SHORT_CONTENT_SUMMARY],
                tags=[source_tag(source)],
                is_fallback=True,
            )

        user_message = f"URL: {url}\nSource: {source}\nOriginal Title: {title or ''}\n"
        if note:
            user_message += f"\nUser Note (USE THIS AS PRIMARY CONTEXT):\n{note}\n"
        user_message += f"\nContent:\n{content or ''}"

        messages = [
            {"role": "system", "content": build_system_prompt(SYSTEM_PROMPT_BASE, existing_tags)},
            {"role": "user", "content": user_message.strip()},
        ]
        try:
            parsed = await self.llm.chat_json(messages, task_type=TaskType.SUMMARIZE)
        except LLMError as e:
            logger.error(f"Summarization failed: {e}", extra={"url": url})
            return Summary(
                title=title or url,
                summary=[FAILED_SUMMARY],
                tags=["llm_failed"],
                is_fallback=True,
            )

        return _parse_summary(parsed, title or url, UNAVAILABLE_SUMMARY)

    async def summarize_image(
        self,
        image_url: str,
        url: str,
        source: str,
        title: Optional[str] = None,
        note: Optional[str] = None,
        text_content: Optional[str] = None,
        existing_tags: Optional[List[str]] = None,
    ) -> Summary:
        """Summarize an image with the vision model; falls back on any LLM error"""
        context = f"URL: {url}\nSource: {source}"
        if note and note.strip():
            context += f"\nUser Note: {note.strip()}"
        if text_content and text_content.strip():
            context += f"\nExtracted Text: {text_content.strip()}"

        messages = [
            {"role": "system", "content": build_system_prompt(VISION_SYSTEM_PROMPT_BASE, existing_tags)},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": context},
                    {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                ],
            },
        ]
        logger.info("Analyzing image", extra={"url": url, "image_url": image_url[:100]})
        try:
            parsed = await self.llm.chat_json(
                messages,
                task_type=TaskType.VISION,
                max_tokens=self.llm.settings.llm_vision_max_tokens,
            )
        except LLMError as e:
            logger.warning(f"Vision summarization failed: {e}", extra={"url": url})
            return Summary(
                title=title or "Image Content",
                summary=[IMAGE_FAILED_SUMMARY],
                tags=[source_tag(source)],
                is_fallback=True,
            )

        return _parse_summary(parsed, title or "Image Content", IMAGE_ANALYZED_SUMMARY)
