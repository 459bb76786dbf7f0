"""
Tests for platform detection and source consolidation
"""
from tavlo.services.platforms import (consolidate_platforms, detect_platform,
                                      get_platform_domains,
                                      get_platform_slug_from_source,
                                      get_youtube_video_id, normalize_domain,
                                      normalize_platform_slug)


def test_normalize_domain_collapses_variants():
    assert normalize_domain("https://mobile.x.com/foo") == "twitter"
    assert normalize_domain("www.twitter.com") == "twitter"
    assert normalize_domain("old.reddit.com") == "reddit"
    assert normalize_domain("youtu.be") == "youtube"
    assert normalize_domain("blog.example.com:8080") == "blog.example.com"
    assert normalize_domain(None) == "unknown"


def test_consolidate_platforms_merges_and_sorts():
    result = consolidate_platforms([
        ("twitter.com", 3),
        ("blog.example.com", 4),
        ("x.com", 2),
    ])

    assert [p.platform for p in result] == ["twitter", "blog.example.com"]
    twitter = result[0]
    assert twitter.count == 5
    assert twitter.display_name == "X (Twitter)"
    assert twitter.variations == ["twitter.com", "x.com"]


def test_platform_slugs():
    assert normalize_platform_slug("TWITTER") == "twitter"
    assert normalize_platform_slug("myspace") is None
    assert "fb.watch" in get_platform_domains("facebook")
    assert get_platform_domains("unknown") == []
    assert get_platform_slug_from_source("www.linkedin.com") == "linkedin"
    assert get_platform_slug_from_source("news.ycombinator.com") == "other"


def test_youtube_video_id():
    assert get_youtube_video_id("https://www.youtube.com/watch?v=abc") == "abc"
    assert get_youtube_video_id("https://youtu.be/xyz") == "xyz"
    assert get_youtube_video_id("https://www.youtube.com/shorts/s1") == "s1"
    assert get_youtube_video_id("https://example.com/watch?v=abc") is None


def test_detect_youtube_embed():
    data = detect_platform("https://www.youtube.com/watch?v=abc", source="youtube.com")

    assert data.is_youtube
    assert data.youtube_video_id == "abc"
    assert data.embed_url == "https://www.youtube.com/embed/abc?autoplay=1"


def test_detect_instagram_reel_is_vertical():
    data = detect_platform("https://www.instagram.com/reel/XYZ/", source="instagram.com")

    assert data.is_instagram
    assert data.instagram_embed_url == "https://www.instagram.com/reel/XYZ/embed"
    assert data.instagram_vertical


def test_detect_linkedin_document_and_embed():
    embed = '<iframe src="https://www.linkedin.com/embed/feed/update/urn:li:activity:1"></iframe>'
    data = detect_platform(
        "https://www.linkedin.com/posts/jane_activity-1",
        source="linkedin.com",
        embed_html=embed,
        title="Free PDF guide to hiring",
    )

    assert data.is_linkedin
    assert data.linkedin_has_document
    assert data.linkedin_embed_url == "https://www.linkedin.com/embed/feed/update/urn:li:activity:1"


def test_detect_plain_article():
    data = detect_platform("https://example.com/post", source="example.com")
    assert data.embed_url is None
    assert not any([data.is_instagram, data.is_youtube, data.is_linkedin, data.is_tiktok, data.is_facebook])
