"""
Content extraction for saved URLs

Routes by platform: Twitter/X via oEmbed, Instagram via oEmbed then Microlink,
LinkedIn via Microlink then page meta tags, everything else via Readability
with a meta-tag fallback. Extractors never raise for remote failures; they
return placeholder content that the content validator later rejects.
"""
import re
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel
from readability import Document

from tavlo.core.config import get_settings
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.metrics import extraction_attempts_total

logger = LoggingConfig.get_logger(__name__)

TWITTER_OEMBED_URL = "https://publish.twitter.com/oembed"
INSTAGRAM_OEMBED_URL = "https://api.instagram.com/oembed/"

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

LINKEDIN_LOGIN_WALL_MARKERS = (
    "sign up",
    "sign in",
    "log in",
    "join linkedin",
    "選擇語言",
    "500 million+ members",
)

_LINKEDIN_URN_PATTERNS = (
    re.compile(r"urn:li:(?:activity|share):(\d+)"),
    re.compile(r"linkedin\.com/posts/[^/]+_activity-(\d+)", re.IGNORECASE),
    re.compile(r"linkedin\.com/feed/update/[^:]+:(\d+)", re.IGNORECASE),
)
_LINKEDIN_AUTHOR_PATTERNS = (
    re.compile(r"linkedin\.com/posts/([^_/]+)", re.IGNORECASE),
    re.compile(r"linkedin\.com/in/([^/]+)", re.IGNORECASE),
)
_LINKEDIN_TITLE_AUTHOR = re.compile(r"^([^|]+?)\s+(?:on\s+)?LinkedIn", re.IGNORECASE)
_INSTAGRAM_URL_AUTHOR = re.compile(r"instagram\.com/([^/]+)/(?:p|reel)/", re.IGNORECASE)
_INSTAGRAM_TITLE_HANDLE = re.compile(r"\(@([^)]+)\)")


class ExtractedContent(BaseModel):
    """Result of extracting a URL; an empty source is filled from the URL host"""
    title: str = ""
    content: str = ""
    source: str = ""
    author: Optional[str] = None
    image_url: Optional[str] = None
    embed_html: Optional[str] = None


def detect_extraction_platform(url: str) -> str:
    """twitter, instagram, linkedin or generic"""
    host = (urlsplit(url).hostname or "").lower()
    if host == "x.com" or host.endswith(".x.com") or "twitter.com" in host:
        return "twitter"
    if "instagram.com" in host:
        return "instagram"
    if "linkedin.com" in host:
        return "linkedin"
    return "generic"


def truncate_content(content: str, max_length: int = 4000) -> str:
    """Cut content for LLM input, marking the cut with an ellipsis"""
    if len(content) <= max_length:
        return content
    return content[:max_length] + "..."


def extract_linkedin_urn(url: str) -> Optional[str]:
    for pattern in _LINKEDIN_URN_PATTERNS:
        match = pattern.search(url)
        if match:
            return f"urn:li:activity:{match.group(1)}"
    return None


def extract_linkedin_author(url: str) -> Optional[str]:
    for pattern in _LINKEDIN_AUTHOR_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def linkedin_embed_html(urn: str) -> str:
    return (
        f'<iframe src="https://www.linkedin.com/embed/feed/update/{urn}" height="600" '
        'width="504" frameborder="0" allowfullscreen="" title="Embedded post"></iframe>'
    )


def is_linkedin_login_wall(title: Optional[str], description: Optional[str] = None) -> bool:
    """LinkedIn serves a sign-in interstitial instead of the post to anonymous clients"""
    if not title:
        return False
    title_lower = title.lower()
    desc_lower = (description or "").lower()
    if title_lower == "linkedin" or title_lower.startswith("sign up"):
        return True
    return any(marker in title_lower or marker in desc_lower for marker in LINKEDIN_LOGIN_WALL_MARKERS)


def _meta_content(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip() or None
    return None


def fallback_title(soup: BeautifulSoup, url: str) -> str:
    title_tag = soup.find("title")
    return (
        _meta_content(soup, property="og:title")
        or _meta_content(soup, name="twitter:title")
        or (title_tag.get_text(strip=True) if title_tag else None)
        or url
    )


def fallback_content(soup: BeautifulSoup) -> str:
    description = _meta_content(soup, property="og:description") or _meta_content(soup, name="description")
    if description:
        return description
    body = soup.find("body")
    if body is None:
        return ""
    for element in body.find_all(["script", "style", "nav", "footer", "header"]):
        element.decompose()
    return body.get_text()[:5000]


class ContentExtractor:
    """
    Fetches and extracts title, text, author and preview image for a URL

    Pass an httpx.AsyncClient to share a connection pool or to inject a
    transport in tests; otherwise one client is created per extraction.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._settings = None

    @property
    def settings(self):
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    async def extract(self, url: str) -> ExtractedContent:
        """Extract content from a URL, routing to the platform-specific strategy"""
        platform = detect_extraction_platform(url)
        logger.debug("Extracting content", extra={"url": url, "platform": platform})

        if self._client is not None:
            return await self._dispatch(self._client, platform, url)

        async with httpx.AsyncClient(
            timeout=self.settings.fetch_timeout_seconds,
            follow_redirects=True,
        ) as client:
            return await self._dispatch(client, platform, url)

    async def _dispatch(self, client: httpx.AsyncClient, platform: str, url: str) -> ExtractedContent:
        if platform == "twitter":
            return await self._extract_twitter(client, url)
        if platform == "instagram":
            return await self._extract_instagram(client, url)
        if platform == "linkedin":
            return await self._extract_linkedin(client, url)
        return await self._extract_generic(client, url)

    def _browser_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.settings.fetch_user_agent, "Accept": HTML_ACCEPT}

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: Dict[str, Any],
                        headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = await client.get(url, params=params, headers={"Accept": "application/json", **(headers or {})})
        response.raise_for_status()
        return response.json()

    async def _microlink(self, client: httpx.AsyncClient, url: str) -> Dict[str, Any]:
        """Fetch Microlink metadata; raises when the lookup did not succeed"""
        payload = await self._get_json(client, self.settings.microlink_api_url, {"url": url})
        if payload.get("status") != "success" or not payload.get("data"):
            raise ValueError("Microlink returned no data")
        return payload["data"]

    async def _extract_twitter(self, client: httpx.AsyncClient, url: str) -> ExtractedContent:
        source = urlsplit(url).hostname or ""
        try:
            data = await self._get_json(client, TWITTER_OEMBED_URL, {"url": url, "omit_script": "true"})
            author = data.get("author_name") or "Unknown"
            tweet_text = ""
            if data.get("html"):
                blockquote = BeautifulSoup(data["html"], "html.parser").find("blockquote")
                if blockquote:
                    paragraphs = [p.get_text().strip() for p in blockquote.find_all("p")]
                    tweet_text = "\n\n".join(p for p in paragraphs if p)

            extraction_attempts_total.labels(platform="twitter", strategy="oembed", status="success").inc()
            return ExtractedContent(
                title=f"Tweet by @{author}",
                content=tweet_text or "Tweet content could not be extracted.",
                source=source,
                author=author,
                embed_html=data.get("html"),
            )
        except (httpx.HTTPError, ValueError) as e:
            extraction_attempts_total.labels(platform="twitter", strategy="oembed", status="failed").inc()
            logger.warning(f"Twitter extraction failed: {e}", extra={"url": url})
            return ExtractedContent(
                title="Twitter Post",
                content=(
                    "This is a Twitter/X post. The content could not be automatically extracted. "
                    "Please view the original post."
                ),
                source=source,
            )

    async def _extract_instagram(self, client: httpx.AsyncClient, url: str) -> ExtractedContent:
        source = urlsplit(url).hostname or ""

        # oEmbed gives the full-size thumbnail, so it wins when it has one
        try:
            data = await self._get_json(
                client, INSTAGRAM_OEMBED_URL, {"url": url},
                headers={"User-Agent": self.settings.fetch_user_agent},
            )
            author = data.get("author_name") or None
            image_url = data.get("thumbnail_url")
            if image_url:
                extraction_attempts_total.labels(platform="instagram", strategy="oembed", status="success").inc()
                return ExtractedContent(
                    title=f"Instagram post by @{author}" if author else "Instagram Post",
                    content=data.get("title") or "Instagram post content.",
                    source=source,
                    author=author,
                    image_url=image_url,
                )
            extraction_attempts_total.labels(platform="instagram", strategy="oembed", status="empty").inc()
        except (httpx.HTTPError, ValueError) as e:
            extraction_attempts_total.labels(platform="instagram", strategy="oembed", status="failed").inc()
            logger.info(f"Instagram oEmbed failed, falling back to Microlink: {e}")

        try:
            data = await self._microlink(client, url)
            raw_title = data.get("title")
            author = (data.get("author") or "").lstrip("@") or None
            if not author and raw_title:
                match = _INSTAGRAM_TITLE_HANDLE.search(raw_title)
                if match:
                    author = match.group(1)
            image = data.get("image") or {}

            extraction_attempts_total.labels(platform="instagram", strategy="microlink", status="success").inc()
            return ExtractedContent(
                title=f"Instagram post by @{author}" if author else "Instagram Post",
                content=data.get("description") or "Instagram post content.",
                source=source,
                author=author,
                image_url=image.get("url"),
            )
        except (httpx.HTTPError, ValueError) as e:
            extraction_attempts_total.labels(platform="instagram", strategy="microlink", status="failed").inc()
            logger.warning(f"Instagram Microlink extraction failed: {e}", extra={"url": url})

        author = None
        match = _INSTAGRAM_URL_AUTHOR.search(url)
        if match and match.group(1) not in ("p", "reel"):
            author = match.group(1)
        return ExtractedContent(
            title=f"Instagram post by @{author}" if author else "Instagram Post",
            content="Instagram content could not be extracted. Please view the original post.",
            source=source,
            author=author,
        )

    async def _extract_linkedin(self, client: httpx.AsyncClient, url: str) -> ExtractedContent:
        source = urlsplit(url).hostname or ""
        urn = extract_linkedin_urn(url)
        url_author = extract_linkedin_author(url)
        embed_html = linkedin_embed_html(urn) if urn else None

        try:
            data = await self._microlink(client, url)
            raw_title = data.get("title")
            description = data.get("description")
            if is_linkedin_login_wall(raw_title, description):
                raise ValueError("LinkedIn login wall detected")

            author = data.get("author") or url_author
            if not author and raw_title:
                match = _LINKEDIN_TITLE_AUTHOR.match(raw_title)
                if match:
                    author = match.group(1).strip()

            title = raw_title or "LinkedIn Post"
            if author and "linkedin" in title.lower():
                title = f"LinkedIn post by {author}"

            content = description or ""
            if len(content) < 20:
                content = "LinkedIn post content. View the original post for full details."

            extraction_attempts_total.labels(platform="linkedin", strategy="microlink", status="success").inc()
            return ExtractedContent(
                title=title,
                content=content,
                source=source,
                author=author,
                image_url=(data.get("image") or {}).get("url"),
                embed_html=embed_html,
            )
        except (httpx.HTTPError, ValueError) as e:
            extraction_attempts_total.labels(platform="linkedin", strategy="microlink", status="failed").inc()
            logger.info(f"LinkedIn Microlink extraction failed, trying direct fetch: {e}")

        try:
            response = await client.get(url, headers=self._browser_headers())
            response.raise_for_status()
            soup = BeautifulSoup(response.text, "html.parser")
            og_title = _meta_content(soup, property="og:title")
            og_description = _meta_content(soup, property="og:description")
            if is_linkedin_login_wall(og_title, og_description):
                raise ValueError("LinkedIn login wall detected")

            author = _meta_content(soup, name="author") or url_author
            title = og_title or "LinkedIn Post"
            if author and author not in title:
                title = f"LinkedIn post by {author}"

            extraction_attempts_total.labels(platform="linkedin", strategy="direct", status="success").inc()
            return ExtractedContent(
                title=title,
                content=og_description or "LinkedIn post content could not be extracted.",
                source=source,
                author=author,
                image_url=_meta_content(soup, property="og:image"),
                embed_html=embed_html,
            )
        except (httpx.HTTPError, ValueError) as e:
            extraction_attempts_total.labels(platform="linkedin", strategy="direct", status="failed").inc()
            logger.warning(f"LinkedIn extraction failed: {e}", extra={"url": url})

        by_author = f" by {url_author}" if url_author else ""
        return ExtractedContent(
            title=f"LinkedIn post{by_author}" if url_author else "LinkedIn Post",
            content=(
                f"This is a LinkedIn post{by_author}. LinkedIn restricts access to post content "
                "without authentication. Click the link to view the original post."
            ),
            source=source,
            author=url_author,
            embed_html=embed_html,
        )

    async def _extract_generic(self, client: httpx.AsyncClient, url: str) -> ExtractedContent:
        source = urlsplit(url).hostname or ""
        try:
            response = await client.get(url, headers=self._browser_headers())
            response.raise_for_status()
            html = response.text
        except httpx.HTTPError as e:
            extraction_attempts_total.labels(platform="generic", strategy="fetch", status="failed").inc()
            logger.warning(f"Generic extraction failed: {e}", extra={"url": url})
            return ExtractedContent(title=url, content="", source=source)

        soup = BeautifulSoup(html, "html.parser")
        image_url = _meta_content(soup, property="og:image") or _meta_content(soup, name="twitter:image")
        author = _meta_content(soup, name="author")

        article_text = ""
        article_title = None
        try:
            document = Document(html)
            article_title = document.short_title() or None
            article_text = BeautifulSoup(document.summary(), "html.parser").get_text("\n").strip()
        except Exception as e:
            # readability raises its own Unparseable and lxml errors on odd markup
            logger.debug(f"Readability failed for {url}: {e}")

        if len(article_text) > 100:
            extraction_attempts_total.labels(platform="generic", strategy="readability", status="success").inc()
            return ExtractedContent(
                title=article_title or fallback_title(soup, url),
                content=article_text,
                source=source,
                author=author,
                image_url=image_url,
            )

        extraction_attempts_total.labels(platform="generic", strategy="meta", status="success").inc()
        return ExtractedContent(
            title=fallback_title(soup, url),
            content=fallback_content(soup),
            source=source,
            author=author,
            image_url=image_url,
        )
