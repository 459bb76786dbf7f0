"""
Canonical URL forms for saved links

Normalizing lets the same post saved from different share sheets (x.com vs
twitter.com, youtu.be vs youtube.com, tracking parameters, ...) compare equal.
"""
import re
from typing import Callable, Iterable, List, Optional, Tuple
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAMS = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "fbclid",
    "gclid",
    "msclkid",
    "ref",
    "source",
)
REDDIT_DROP_PARAMS = ("context", "utm_source", "utm_medium", "utm_campaign", "utm_content", "share_id")
LINKEDIN_DROP_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "trk", "trackingId")

_TWEET_PATH = re.compile(r"^(/[^/]+/status/\d+)")
_INSTAGRAM_PATH = re.compile(r"^/(p|reel|tv)/([^/]+)")
_TIKTOK_PATH = re.compile(r"^(/@[^/]+/video/\d+)")


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def _without_params(query: str, drop: Iterable[str]) -> str:
    dropped = set(drop)
    return urlencode([(k, v) for k, v in parse_qsl(query, keep_blank_values=True) if k not in dropped])


def _build(parts: SplitResult, host: Optional[str] = None, path: Optional[str] = None, query: str = "") -> str:
    netloc = host if host is not None else parts.netloc
    if parts.port and host is not None:
        netloc = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, (path if path is not None else parts.path) or "/", query, ""))


def _normalize_twitter(parts: SplitResult) -> str:
    host = parts.hostname or ""
    if _host_matches(host, "x.com"):
        host = host[:-len("x.com")] + "twitter.com"
    match = _TWEET_PATH.match(parts.path)
    return _build(parts, host=host, path=match.group(1) if match else parts.path)


def _normalize_instagram(parts: SplitResult) -> str:
    match = _INSTAGRAM_PATH.match(parts.path)
    path = f"/{match.group(1)}/{match.group(2)}/" if match else parts.path
    return _build(parts, host="instagram.com", path=path)


def _normalize_reddit(parts: SplitResult) -> str:
    host = parts.hostname or ""
    if host in ("www.reddit.com", "old.reddit.com", "new.reddit.com"):
        host = "reddit.com"
    return _build(parts, host=host, query=_without_params(parts.query, REDDIT_DROP_PARAMS))


def _normalize_youtube(parts: SplitResult) -> str:
    host = parts.hostname or ""
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    path = parts.path

    if _host_matches(host, "youtu.be"):
        host = "youtube.com"
        params["v"] = path.lstrip("/")
        path = "/watch"
    elif path.startswith("/shorts/"):
        params["v"] = path[len("/shorts/"):]
        path = "/watch"

    video_id = params.get("v")
    if video_id:
        kept = [("v", video_id)]
        if params.get("t"):
            kept.append(("t", params["t"]))
        query = urlencode(kept)
    else:
        query = parts.query
    return _build(parts, host=host, path=path, query=query)


def _normalize_tiktok(parts: SplitResult) -> str:
    match = _TIKTOK_PATH.match(parts.path)
    return _build(parts, host="tiktok.com", path=match.group(1) if match else parts.path)


def _normalize_linkedin(parts: SplitResult) -> str:
    host = parts.hostname or ""
    if host == "www.linkedin.com":
        host = "linkedin.com"
    return _build(parts, host=host, query=_without_params(parts.query, LINKEDIN_DROP_PARAMS))


def _normalize_generic(parts: SplitResult) -> str:
    host = parts.hostname or ""
    if host.startswith("www."):
        host = host[4:]
    return _build(parts, host=host, query=_without_params(parts.query, TRACKING_PARAMS))


_PLATFORM_NORMALIZERS: List[Tuple[Tuple[str, ...], Callable[[SplitResult], str]]] = [
    (("twitter.com", "x.com"), _normalize_twitter),
    (("instagram.com",), _normalize_instagram),
    (("reddit.com",), _normalize_reddit),
    (("youtube.com", "youtu.be"), _normalize_youtube),
    (("tiktok.com",), _normalize_tiktok),
    (("linkedin.com",), _normalize_linkedin),
]


def is_valid_url(url: Optional[str]) -> bool:
    """True for absolute http(s) URLs with a host"""
    if not url or not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def normalize_url(url: str) -> str:
    """
    Return the canonical form of a URL.

    Fragments are always dropped; query strings are reduced to the
    parameters that identify content on the platform. Input that does not
    parse as an absolute http(s) URL is returned unchanged.
    """
    if not is_valid_url(url):
        return url
    parts = urlsplit(url.strip())
    host = (parts.hostname or "").lower()
    for domains, normalizer in _PLATFORM_NORMALIZERS:
        if any(_host_matches(host, domain) for domain in domains):
            return normalizer(parts)
    return _normalize_generic(parts)
