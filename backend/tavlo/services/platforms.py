"""
Platform metadata: source-domain normalization, platform slugs and embed detection
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from pydantic import BaseModel

# canonical name -> domains that map to it
PLATFORM_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "twitter": ("twitter.com", "x.com", "t.co"),
    "reddit": ("reddit.com",),
    "instagram": ("instagram.com", "instagr.am"),
    "tiktok": ("tiktok.com",),
    "youtube": ("youtube.com", "youtu.be"),
    "linkedin": ("linkedin.com", "lnkd.in"),
    "facebook": ("facebook.com", "fb.com", "fb.me", "fb.watch"),
    "github": ("github.com", "gist.github.com"),
    "medium": ("medium.com",),
    "substack": ("substack.com",),
    "nytimes.com": ("nytimes.com",),
    "techcrunch.com": ("techcrunch.com",),
    "deeplearning.ai": ("deeplearning.ai", "learn.deeplearning.ai"),
}

DISPLAY_NAMES = {
    "twitter": "X (Twitter)",
    "reddit": "Reddit",
    "instagram": "Instagram",
    "tiktok": "TikTok",
    "youtube": "YouTube",
    "linkedin": "LinkedIn",
    "facebook": "Facebook",
    "github": "GitHub",
    "medium": "Medium",
    "substack": "Substack",
    "deeplearning.ai": "DeepLearning.AI",
    "nytimes.com": "The New York Times",
    "techcrunch.com": "TechCrunch",
}

_SUBDOMAIN_PREFIXES = ("m.", "mobile.", "app.", "vt.", "vm.", "v.", "old.", "new.", "i.", "web.")


class PlatformConfig(BaseModel):
    """Filterable platform shown in the library sidebar"""
    slug: str
    label: str
    icon: str
    domains: List[str]
    order: int


PLATFORM_CONFIG: List[PlatformConfig] = [
    PlatformConfig(slug="twitter", label="Twitter", icon="𝕏", domains=["twitter.com", "x.com"], order=1),
    PlatformConfig(slug="linkedin", label="LinkedIn", icon="💼", domains=["linkedin.com"], order=2),
    PlatformConfig(slug="instagram", label="Instagram", icon="📸", domains=["instagram.com"], order=3),
    PlatformConfig(
        slug="facebook", label="Facebook", icon="📘",
        domains=["facebook.com", "fb.com", "fb.me", "fb.watch"], order=4,
    ),
    PlatformConfig(slug="youtube", label="YouTube", icon="▶️", domains=["youtube.com", "youtu.be"], order=5),
    PlatformConfig(slug="reddit", label="Reddit", icon="👽", domains=["reddit.com"], order=6),
    PlatformConfig(slug="tiktok", label="TikTok", icon="🎵", domains=["tiktok.com", "vm.tiktok.com"], order=7),
    PlatformConfig(
        slug="newsletter", label="Newsletter", icon="✉️",
        domains=["email", "resend", "sendgrid", "mailgun", "newsletter", "substack.com"], order=8,
    ),
    PlatformConfig(slug="other", label="Other", icon="🌐", domains=[], order=99),
]
_CONFIG_BY_SLUG = {platform.slug: platform for platform in PLATFORM_CONFIG}


class ConsolidatedPlatform(BaseModel):
    platform: str
    display_name: str
    count: int
    variations: List[str]


class PlatformData(BaseModel):
    """Which embed, if any, the UI can render for an item"""
    is_instagram: bool = False
    is_tiktok: bool = False
    is_youtube: bool = False
    is_linkedin: bool = False
    is_facebook: bool = False
    instagram_embed_url: Optional[str] = None
    instagram_vertical: bool = False
    tiktok_embed_url: Optional[str] = None
    youtube_embed_url: Optional[str] = None
    youtube_video_id: Optional[str] = None
    linkedin_embed_url: Optional[str] = None
    linkedin_has_document: bool = False
    linkedin_has_video: bool = False
    facebook_embed_url: Optional[str] = None

    @property
    def embed_url(self) -> Optional[str]:
        return (
            self.instagram_embed_url
            or self.tiktok_embed_url
            or self.youtube_embed_url
            or self.linkedin_embed_url
            or self.facebook_embed_url
        )


def normalize_domain(domain: Optional[str]) -> str:
    """
    Collapse a raw source/hostname to a canonical platform name.

    >>> normalize_domain("https://mobile.x.com/foo")
    'twitter'
    >>> normalize_domain("blog.example.com:8080")
    'blog.example.com'
    """
    if not domain:
        return "unknown"

    normalized = domain.lower().strip()
    normalized = re.sub(r"^https?://", "", normalized)
    if normalized.startswith("www."):
        normalized = normalized[4:]
    for prefix in _SUBDOMAIN_PREFIXES:
        if normalized.startswith(prefix):
            normalized = normalized[len(prefix):]
    normalized = normalized.split("/")[0].split(":")[0]

    for canonical, patterns in PLATFORM_PATTERNS.items():
        for pattern in patterns:
            if normalized == pattern or normalized.endswith("." + pattern):
                return canonical

    return normalized


def get_platform_display_name(canonical_name: str) -> str:
    return DISPLAY_NAMES.get(canonical_name, canonical_name)


def consolidate_platforms(platforms: Iterable[Tuple[str, int]]) -> List[ConsolidatedPlatform]:
    """Merge (source, count) pairs that normalize to the same platform, largest first"""
    grouped: Dict[str, Dict] = {}
    for source, count in platforms:
        canonical = normalize_domain(source)
        entry = grouped.setdefault(canonical, {"count": 0, "variations": []})
        entry["count"] += count
        if source not in entry["variations"]:
            entry["variations"].append(source)

    result = [
        ConsolidatedPlatform(
            platform=canonical,
            display_name=get_platform_display_name(canonical),
            count=data["count"],
            variations=data["variations"],
        )
        for canonical, data in grouped.items()
    ]
    result.sort(key=lambda p: p.count, reverse=True)
    return result


def normalize_platform_slug(slug: Optional[str]) -> Optional[str]:
    if not slug:
        return None
    slug = slug.lower()
    return slug if slug in _CONFIG_BY_SLUG else None


def get_platform_domains(slug: str) -> List[str]:
    platform = _CONFIG_BY_SLUG.get(slug)
    return list(platform.domains) if platform else []


def get_platform_label(slug: str) -> str:
    platform = _CONFIG_BY_SLUG.get(slug)
    return platform.label if platform else slug


def get_platform_slug_from_source(source: Optional[str]) -> str:
    normalized = (source or "").lower()
    for platform in PLATFORM_CONFIG:
        if any(domain.replace("www.", "") in normalized for domain in platform.domains):
            return platform.slug
    return "other"


def get_youtube_video_id(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    host = (parts.hostname or "").lower()
    if "youtube.com" in host:
        if parts.path.startswith("/shorts/"):
            segments = parts.path.split("/")
            return segments[2] if len(segments) > 2 and segments[2] else None
        return parse_qs(parts.query).get("v", [None])[0]
    if "youtu.be" in host:
        return parts.path.lstrip("/") or None
    return None


_SRC_ATTR = re.compile(r'src="([^"]+)"')
_TIKTOK_VIDEO_ID = re.compile(r'data-video-id="(\d+)"')
_DOCUMENT_HINTS = ("pdf", "guide", "report", "download", "document", "whitepaper")


def detect_platform(
    url: str,
    source: Optional[str] = None,
    embed_html: Optional[str] = None,
    title: Optional[str] = None,
    summary: Optional[str] = None,
    document_url: Optional[str] = None,
    video_url: Optional[str] = None,
) -> PlatformData:
    """Work out platform flags and embed URLs for an item"""
    url_lower = (url or "").lower()
    source_lower = (source or "").lower()

    data = PlatformData(
        is_instagram="instagram" in source_lower or "instagram.com" in url_lower,
        is_tiktok="tiktok" in source_lower or "tiktok" in url_lower,
        is_youtube="youtube" in source_lower or "youtu" in url_lower,
        is_linkedin="linkedin" in source_lower or "linkedin.com" in url_lower,
        is_facebook=(
            "facebook" in source_lower
            or any(d in url_lower for d in ("facebook.com", "fb.com", "fb.watch"))
        ),
    )

    if data.is_instagram:
        try:
            segments = [s for s in urlsplit(url).path.split("/") if s]
        except ValueError:
            segments = []
        if len(segments) > 1 and segments[0] in ("p", "reel", "tv"):
            data.instagram_embed_url = f"https://www.instagram.com/{segments[0]}/{segments[1]}/embed"
        data.instagram_vertical = bool(segments) and segments[0] in ("reel", "tv")

    if data.is_tiktok and embed_html:
        match = _TIKTOK_VIDEO_ID.search(embed_html)
        if match:
            data.tiktok_embed_url = f"https://www.tiktok.com/embed/v2/{match.group(1)}"

    if data.is_youtube:
        data.youtube_video_id = get_youtube_video_id(url)
        if data.youtube_video_id:
            data.youtube_embed_url = f"https://www.youtube.com/embed/{data.youtube_video_id}?autoplay=1"

    if data.is_linkedin:
        if document_url:
            data.linkedin_has_document = True
        else:
            text = f"{title or ''} {summary or ''}".lower()
            data.linkedin_has_document = (
                any(hint in text for hint in _DOCUMENT_HINTS)
                or "/document/" in url_lower
                or "documentid=" in url_lower
                or "document" in (embed_html or "").lower()
            )
        data.linkedin_has_video = bool(video_url) or "/video/" in url_lower or "activity:" in url_lower
        if embed_html:
            match = _SRC_ATTR.search(embed_html)
            if match:
                data.linkedin_embed_url = match.group(1)

    if data.is_facebook and embed_html:
        match = _SRC_ATTR.search(embed_html)
        if match:
            data.facebook_embed_url = match.group(1)

    return data
