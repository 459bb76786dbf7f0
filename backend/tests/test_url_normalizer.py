"""
Tests for URL normalization
"""
import pytest

from tavlo.services.url_normalizer import is_valid_url, normalize_url


@pytest.mark.parametrize("url,expected", [
    ("https://x.com/jack/status/20?s=20&t=abc", "https://twitter.com/jack/status/20"),
    ("https://twitter.com/jack/status/20/photo/1", "https://twitter.com/jack/status/20"),
    ("https://youtu.be/dQw4w9WgXcQ?t=42", "https://youtube.com/watch?v=dQw4w9WgXcQ&t=42"),
    ("https://www.youtube.com/shorts/abc123", "https://www.youtube.com/watch?v=abc123"),
    ("https://www.youtube.com/watch?v=abc&list=PL1&index=2", "https://www.youtube.com/watch?v=abc"),
    ("https://www.instagram.com/reel/C0DE/?igsh=xyz", "https://instagram.com/reel/C0DE/"),
    (
        "https://www.reddit.com/r/python/comments/abc/title/?context=3&sort=top",
        "https://reddit.com/r/python/comments/abc/title/?sort=top",
    ),
    ("https://www.tiktok.com/@chef/video/123456?lang=en", "https://tiktok.com/@chef/video/123456"),
    (
        "https://www.linkedin.com/posts/jane_activity-1/?trk=public&utm_source=share",
        "https://linkedin.com/posts/jane_activity-1/",
    ),
    ("https://www.example.com/article?utm_source=x&id=5#comments", "https://example.com/article?id=5"),
    ("https://example.com", "https://example.com/"),
])
def test_normalize_url(url, expected):
    assert normalize_url(url) == expected


def test_normalize_is_idempotent():
    url = "https://x.com/jack/status/20?s=20"
    assert normalize_url(normalize_url(url)) == normalize_url(url)


def test_x_lookalike_domains_are_not_twitter():
    assert normalize_url("https://box.com/s/abc") == "https://box.com/s/abc"


def test_invalid_url_returned_unchanged():
    assert normalize_url("not a url") == "not a url"


@pytest.mark.parametrize("url,valid", [
    ("https://example.com/a", True),
    ("http://example.com", True),
    ("ftp://example.com/file", False),
    ("example.com", False),
    ("", False),
    (None, False),
])
def test_is_valid_url(url, valid):
    assert is_valid_url(url) is valid
