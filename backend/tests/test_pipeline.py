"""
Tests for the URL ingestion pipeline with a stubbed extractor and summarizer
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from tavlo.core.errors import ContentValidationError, InvalidURLError
from tavlo.models import Item, ItemTag, UserStats, XPEvent
from tavlo.services.domains import get_domain_id
from tavlo.services.extractor import ExtractedContent
from tavlo.services.pipeline import (PipelineService, prepare_vision_image,
                                     upsize_instagram_image)
from tavlo.services.summarizer import (FAILED_SUMMARY, IMAGE_FAILED_SUMMARY,
                                       Summary)

ARTICLE = ExtractedContent(
    title="Consensus explained",
    content="Distributed consensus lets a group of machines agree on a single value. " * 3,
    source="example.com",
    author="Ada Lovelace",
    image_url="https://example.com/cover.png",
)

GOOD_SUMMARY = Summary(
    title="How consensus works",
    summary=["Raft elects a leader and replicates a log.", "Entries commit once a majority acknowledges."],
    tags=["python", "distributed systems"],
    type="learn",
    category="tech",
)


def _pipeline(db, extracted=ARTICLE, summary=GOOD_SUMMARY):
    extractor = AsyncMock()
    extractor.extract.return_value = extracted.model_copy()
    summarizer = AsyncMock()
    summarizer.summarize.return_value = summary.model_copy()
    summarizer.summarize_image.return_value = summary.model_copy()
    return PipelineService(db, extractor=extractor, summarizer=summarizer), extractor, summarizer


def test_prepare_vision_image():
    assert prepare_vision_image(None, "example.com") is None
    assert prepare_vision_image("https://example.com/a.png", "example.com") == "https://example.com/a.png"
    assert prepare_vision_image("https://example.com/a", "example.com") is None
    assert prepare_vision_image("https://scontent.cdninstagram.com/a.jpg", "instagram.com") is None
    assert prepare_vision_image(
        "https://img.example.com/s150x150/a.jpg", "instagram.com"
    ) == "https://img.example.com/s1080x1080/a.jpg"
    assert prepare_vision_image("https://img.example.com/profile_pic/a.jpg", "instagram.com") is None


@pytest.mark.asyncio
async def test_process_item_saves_and_rewards(seeded, user):
    db = seeded
    pipeline, extractor, _ = _pipeline(db)

    result = await pipeline.process_item("https://www.example.com/post?utm_source=x", "  read later ", user.id)

    item = result.item
    assert result.success
    assert item.url == "https://example.com/post"
    assert item.note == "read later"
    assert item.title == "How consensus works"
    assert item.summary_bullets == GOOD_SUMMARY.summary
    assert item.tags == ["python", "distributed systems"]
    assert item.author == "Ada Lovelace"
    assert item.domain_id == get_domain_id(db, "technology")
    assert db.query(ItemTag).filter(ItemTag.item_id == item.id).count() == 2
    extractor.extract.assert_awaited_once_with("https://example.com/post")

    actions = sorted(e.action for e in db.query(XPEvent).all())
    assert actions == ["process_item", "save_item"]
    stats = db.query(UserStats).one()
    assert stats.total_xp == 15
    assert stats.items_saved == 1
    assert stats.items_processed == 1
    assert stats.current_streak == 1
    assert [b.key for b in result.new_badges] == ["first_item"]


@pytest.mark.asyncio
async def test_invalid_url_rejected(db, user):
    pipeline, extractor, _ = _pipeline(db)

    with pytest.raises(InvalidURLError):
        await pipeline.process_item("not a url", None, user.id)

    extractor.extract.assert_not_called()
    assert db.query(Item).count() == 0


@pytest.mark.asyncio
async def test_failed_summary_is_not_saved(db, user):
    failed = Summary(title="x", summary=[FAILED_SUMMARY], tags=["llm_failed"], is_fallback=True)
    pipeline, _, _ = _pipeline(db, summary=failed)

    with pytest.raises(ContentValidationError) as exc_info:
        await pipeline.process_item("https://example.com/post", None, user.id)

    assert str(exc_info.value) == "Content processing failed"
    assert db.query(Item).count() == 0
    assert db.query(XPEvent).count() == 0


@pytest.mark.asyncio
async def test_empty_extraction_is_not_saved(db, user):
    empty = ExtractedContent(title="https://example.com/post", content="", source="example.com")
    pipeline, _, _ = _pipeline(db, extracted=empty)

    with pytest.raises(ContentValidationError) as exc_info:
        await pipeline.process_item("https://example.com/post", None, user.id)

    assert exc_info.value.reason == "No content could be extracted from this URL"


@pytest.mark.asyncio
async def test_pre_extracted_content_skips_fetch(db, user):
    pipeline, extractor, _ = _pipeline(db)

    result = await pipeline.process_item(
        "https://example.com/post",
        None,
        user.id,
        pre_extracted=ARTICLE.model_dump(),
    )

    extractor.extract.assert_not_called()
    assert result.item.source == "example.com"


@pytest.mark.asyncio
async def test_image_post_uses_vision(db, user):
    image_post = ExtractedContent(
        title="Instagram post by @chef",
        content="Five minute pasta with garlic and oil.",
        source="instagram.com",
        author="chef",
        image_url="https://img.example.com/pasta.jpg",
    )
    pipeline, _, summarizer = _pipeline(db, extracted=image_post)

    await pipeline.process_item("https://www.instagram.com/p/ABC/", None, user.id)

    summarizer.summarize_image.assert_awaited_once()
    summarizer.summarize.assert_not_called()


@pytest.mark.asyncio
async def test_reddit_keeps_original_title(db, user):
    reddit = ARTICLE.model_copy(update={"source": "reddit.com", "title": "Ask r/python: favourite tools?"})
    pipeline, _, _ = _pipeline(db, extracted=reddit)

    result = await pipeline.process_item("https://www.reddit.com/r/python/comments/abc/x/", None, user.id)

    assert result.item.title == "Ask r/python: favourite tools?"


def test_upsize_instagram_image():
    thumb = "https://scontent.cdninstagram.com/v/s150x150/pic.jpg"
    assert upsize_instagram_image(thumb, "instagram.com") == "https://scontent.cdninstagram.com/v/s1080x1080/pic.jpg"
    assert upsize_instagram_image(thumb, "example.com") == thumb
    assert upsize_instagram_image(None, "instagram.com") is None


@pytest.mark.asyncio
async def test_instagram_image_is_stored_upsized_without_vision(db, user):
    post = ExtractedContent(
        title="Instagram post by @chef",
        content="Five minute pasta with garlic and oil.",
        source="instagram.com",
        author="chef",
        image_url="https://scontent.cdninstagram.com/v/s150x150/pasta.jpg",
    )
    pipeline, _, summarizer = _pipeline(db, extracted=post)

    result = await pipeline.process_item("https://www.instagram.com/p/ABC/", None, user.id)

    # The CDN refuses the vision fetcher, so the text summary is used
    summarizer.summarize_image.assert_not_called()
    assert result.item.image_url == "https://scontent.cdninstagram.com/v/s1080x1080/pasta.jpg"


@pytest.mark.asyncio
async def test_failed_vision_summary_falls_back_to_text(db, user):
    image_post = ExtractedContent(
        title="Instagram post by @chef",
        content="Five minute pasta with garlic and oil.",
        source="instagram.com",
        author="chef",
        image_url="https://img.example.com/pasta.jpg",
    )
    pipeline, _, summarizer = _pipeline(db, extracted=image_post)
    summarizer.summarize_image.return_value = Summary(
        title="Image Content", summary=[IMAGE_FAILED_SUMMARY], tags=["instagram"], is_fallback=True,
    )

    result = await pipeline.process_item("https://www.instagram.com/p/ABC/", None, user.id)

    summarizer.summarize_image.assert_awaited_once()
    summarizer.summarize.assert_awaited_once()
    assert result.item.title == "How consensus works"
    assert result.item.summary_bullets == GOOD_SUMMARY.summary


@pytest.mark.asyncio
async def test_xp_failure_does_not_fail_the_save(seeded, user):
    db = seeded
    pipeline, _, _ = _pipeline(db)
    pipeline.xp.award_xp = MagicMock(side_effect=RuntimeError("xp store down"))

    result = await pipeline.process_item("https://example.com/post", None, user.id)

    assert result.success
    assert db.query(Item).filter(Item.id == result.item.id).count() == 1
    assert db.query(XPEvent).count() == 0
    assert pipeline.xp.award_xp.call_count == 2
    # Activity tracking still ran after the XP failures
    assert db.query(UserStats).one().current_streak == 1


@pytest.mark.asyncio
async def test_streak_failure_does_not_fail_the_save(seeded, user):
    db = seeded
    pipeline, _, _ = _pipeline(db)
    pipeline.activity.track_activity = MagicMock(side_effect=RuntimeError("streak store down"))

    result = await pipeline.process_item("https://example.com/post", None, user.id)

    assert result.success
    assert pipeline.activity.track_activity.call_count == 2
    assert db.query(XPEvent).count() == 2
    assert db.query(Item).filter(Item.id == result.item.id).count() == 1


@pytest.mark.asyncio
async def test_badge_failure_does_not_fail_the_save(seeded, user):
    db = seeded
    pipeline, _, _ = _pipeline(db)
    pipeline.badges.check_all_badges = MagicMock(side_effect=RuntimeError("badges down"))

    result = await pipeline.process_item("https://example.com/post", None, user.id)

    assert result.success
    assert result.new_badges == []
    assert result.item.title == "How consensus works"
    assert db.query(XPEvent).count() == 2


@pytest.mark.asyncio
async def test_pre_extracted_without_source_uses_url_host(db, user):
    pipeline, extractor, _ = _pipeline(db)

    result = await pipeline.process_item(
        "https://www.example.com/post",
        None,
        user.id,
        pre_extracted={"title": "Post", "content": ARTICLE.content, "author": "ada", "source": None},
    )

    extractor.extract.assert_not_called()
    assert result.item.source == "example.com"
    assert result.item.author == "ada"


@pytest.mark.asyncio
async def test_malformed_pre_extracted_is_rejected(db, user):
    pipeline, _, _ = _pipeline(db)

    with pytest.raises(ContentValidationError) as exc_info:
        await pipeline.process_item("https://example.com/post", None, user.id, pre_extracted={"content": 42})

    assert exc_info.value.reason == "pre_extracted"
    assert db.query(Item).count() == 0
