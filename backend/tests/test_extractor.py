"""
Tests for content extraction (HTTP mocked with httpx.MockTransport)
"""
import httpx
import pytest

from tavlo.services.extractor import (ContentExtractor,
                                      detect_extraction_platform,
                                      extract_linkedin_author,
                                      extract_linkedin_urn,
                                      is_linkedin_login_wall, truncate_content)

ARTICLE_HTML = """
<html>
<head>
  <title>Consensus explained | Example Blog</title>
  <meta property="og:image" content="https://example.com/cover.png">
  <meta name="author" content="Ada Lovelace">
</head>
<body>
  <nav>Home | About</nav>
  <article>
    <h1>Consensus explained</h1>
    <p>Distributed consensus lets a group of machines agree on a single value even when some of them
    fail. Protocols such as Raft and Paxos elect a leader, replicate a log and commit entries once a
    majority has acknowledged them.</p>
    <p>Understanding these protocols helps when operating databases, queues and coordination services
    that depend on them, because their failure modes follow directly from the quorum rules.</p>
  </article>
</body>
</html>
"""

META_ONLY_HTML = """
<html>
<head>
  <meta property="og:title" content="Tiny page">
  <meta property="og:description" content="A short description from the page metadata.">
</head>
<body><p>Hi</p></body>
</html>
"""


def _extractor(handler) -> ContentExtractor:
    return ContentExtractor(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.parametrize("url,platform", [
    ("https://x.com/jack/status/20", "twitter"),
    ("https://mobile.twitter.com/jack/status/20", "twitter"),
    ("https://box.com/file", "generic"),
    ("https://www.instagram.com/p/abc/", "instagram"),
    ("https://www.linkedin.com/posts/jane_activity-1", "linkedin"),
    ("https://example.com/post", "generic"),
])
def test_detect_extraction_platform(url, platform):
    assert detect_extraction_platform(url) == platform


def test_truncate_content():
    assert truncate_content("abc", 5) == "abc"
    assert truncate_content("abcdefgh", 5) == "abcde..."


def test_linkedin_url_helpers():
    url = "https://www.linkedin.com/posts/janedoe_activity-7123456789-abcd"
    assert extract_linkedin_urn(url) == "urn:li:activity:7123456789"
    assert extract_linkedin_author(url) == "janedoe"
    assert is_linkedin_login_wall("Sign Up | LinkedIn")
    assert not is_linkedin_login_wall("Jane Doe on LinkedIn: shipping notes", "Notes on shipping.")


@pytest.mark.asyncio
async def test_twitter_oembed():
    def handler(request):
        assert request.url.host == "publish.twitter.com"
        return httpx.Response(200, json={
            "author_name": "jack",
            "html": '<blockquote class="twitter-tweet"><p>just setting up my twttr</p>&mdash; jack</blockquote>',
        })

    result = await _extractor(handler).extract("https://twitter.com/jack/status/20")

    assert result.title == "Tweet by @jack"
    assert result.content == "just setting up my twttr"
    assert result.author == "jack"
    assert result.source == "twitter.com"
    assert "blockquote" in result.embed_html


@pytest.mark.asyncio
async def test_twitter_failure_returns_placeholder():
    result = await _extractor(lambda request: httpx.Response(404)).extract("https://x.com/jack/status/20")

    assert result.title == "Twitter Post"
    assert "could not be automatically extracted" in result.content
    assert result.author is None


@pytest.mark.asyncio
async def test_instagram_oembed_thumbnail():
    def handler(request):
        return httpx.Response(200, json={
            "author_name": "chef",
            "title": "Five minute pasta",
            "thumbnail_url": "https://cdn.example.com/thumb.jpg",
        })

    result = await _extractor(handler).extract("https://www.instagram.com/p/ABC/")

    assert result.title == "Instagram post by @chef"
    assert result.content == "Five minute pasta"
    assert result.image_url == "https://cdn.example.com/thumb.jpg"


@pytest.mark.asyncio
async def test_instagram_falls_back_to_url_author():
    result = await _extractor(lambda request: httpx.Response(500)).extract(
        "https://www.instagram.com/chef/p/ABC/"
    )

    assert result.author == "chef"
    assert "could not be extracted" in result.content


@pytest.mark.asyncio
async def test_linkedin_microlink():
    def handler(request):
        assert request.url.host == "api.microlink.io"
        return httpx.Response(200, json={
            "status": "success",
            "data": {
                "title": "Jane Doe on LinkedIn: Hiring notes",
                "description": "Three things I learned from running forty interviews this quarter.",
                "image": {"url": "https://media.licdn.com/img.jpg"},
            },
        })

    url = "https://www.linkedin.com/posts/janedoe_activity-7123456789-abcd"
    result = await _extractor(handler).extract(url)

    assert result.author == "janedoe"
    assert result.title == "LinkedIn post by janedoe"
    assert result.content.startswith("Three things")
    assert "urn:li:activity:7123456789" in result.embed_html


@pytest.mark.asyncio
async def test_linkedin_login_wall_falls_back():
    def handler(request):
        if request.url.host == "api.microlink.io":
            return httpx.Response(200, json={"status": "success", "data": {"title": "Sign Up | LinkedIn"}})
        return httpx.Response(403)

    url = "https://www.linkedin.com/posts/janedoe_activity-7123456789-abcd"
    result = await _extractor(handler).extract(url)

    assert result.title == "LinkedIn post by janedoe"
    assert "restricts access" in result.content
    assert result.embed_html is not None


@pytest.mark.asyncio
async def test_generic_article_uses_readability():
    result = await _extractor(lambda request: httpx.Response(200, text=ARTICLE_HTML)).extract(
        "https://example.com/consensus"
    )

    assert "Raft and Paxos" in result.content
    assert result.author == "Ada Lovelace"
    assert result.image_url == "https://example.com/cover.png"
    assert result.source == "example.com"


@pytest.mark.asyncio
async def test_generic_short_page_uses_meta():
    result = await _extractor(lambda request: httpx.Response(200, text=META_ONLY_HTML)).extract(
        "https://example.com/tiny"
    )

    assert result.title == "Tiny page"
    assert result.content == "A short description from the page metadata."


@pytest.mark.asyncio
async def test_generic_fetch_error_returns_empty_content():
    result = await _extractor(lambda request: httpx.Response(503)).extract("https://example.com/down")

    assert result.content == ""
    assert result.title == "https://example.com/down"
