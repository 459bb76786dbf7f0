"""
Tests for the LLM client and summarizer
"""
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from tavlo.core.config import Settings
from tavlo.core.errors import LLMError
from tavlo.core.llm_client import (LLMClient, TaskType, close_llm_client,
                                   get_llm_client)
from tavlo.services.summarizer import (FAILED_SUMMARY, IMAGE_ANALYZED_SUMMARY,
                                       IMAGE_FAILED_SUMMARY,
                                       SHORT_CONTENT_SUMMARY,
                                       UNAVAILABLE_SUMMARY, Summarizer,
                                       build_system_prompt, source_tag)

LONG_CONTENT = "Raft elects a leader and replicates a log to followers. " * 3


def _llm(handler) -> LLMClient:
    client = LLMClient(client=httpx.AsyncClient(
        base_url="https://llm.test/v1",
        transport=httpx.MockTransport(handler),
    ))
    client._settings = Settings(llm_api_key="test-key")
    return client


def _completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={
        "model": "gpt-4.1-mini",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 34},
    })


@pytest.mark.asyncio
async def test_chat_sends_json_mode_request():
    captured = {}

    def handler(request):
        captured["auth"] = request.headers["Authorization"]
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return _completion('{"ok": true}')

    result = await _llm(handler).chat_json([{"role": "user", "content": "hi"}])

    assert result == {"ok": True}
    assert captured["auth"] == "Bearer test-key"
    assert captured["path"] == "/v1/chat/completions"
    assert captured["body"]["response_format"] == {"type": "json_object"}
    assert captured["body"]["model"] == "gpt-4.1-mini"


@pytest.mark.asyncio
async def test_vision_task_uses_vision_model():
    seen = {}

    def handler(request):
        seen["model"] = json.loads(request.content)["model"]
        return _completion("{}")

    await _llm(handler).chat([{"role": "user", "content": "hi"}], task_type=TaskType.VISION)

    assert seen["model"] == "gpt-4o-mini"


@pytest.mark.asyncio
async def test_chat_errors():
    with pytest.raises(LLMError):
        await _llm(lambda request: httpx.Response(500)).chat([])
    with pytest.raises(LLMError):
        await _llm(lambda request: _completion("   ")).chat([])
    with pytest.raises(LLMError):
        await _llm(lambda request: _completion("not json")).chat_json([])
    with pytest.raises(LLMError):
        await _llm(lambda request: _completion("[1, 2]")).chat_json([])


@pytest.mark.asyncio
async def test_unconfigured_client_raises():
    client = LLMClient()
    client._settings = Settings(llm_api_key=None)
    assert not client.is_configured
    with pytest.raises(LLMError):
        await client.chat([])


def test_helpers():
    assert source_tag("www.reddit.com") == "reddit"
    assert source_tag("example.co.uk") == "example"
    assert build_system_prompt("base", None) == "base"
    assert "python, rust" in build_system_prompt("base", ["python", "rust"])


@pytest.mark.asyncio
async def test_short_content_without_note_skips_llm():
    llm = AsyncMock()
    summary = await Summarizer(llm).summarize("tiny", "https://example.com", "www.example.com")

    assert summary.summary == [SHORT_CONTENT_SUMMARY]
    assert summary.tags == ["example"]
    assert summary.is_fallback
    llm.chat_json.assert_not_called()


@pytest.mark.asyncio
async def test_note_makes_short_content_summarizable():
    llm = AsyncMock()
    llm.chat_json.return_value = {"title": "Pasta", "summary": ["Cook pasta quickly."], "tags": ["food"]}

    summary = await Summarizer(llm).summarize("tiny", "https://example.com", "example.com", note="recipe")

    assert summary.title == "Pasta"
    assert not summary.is_fallback
    messages = llm.chat_json.call_args.args[0]
    assert "User Note (USE THIS AS PRIMARY CONTEXT):\nrecipe" in messages[1]["content"]


@pytest.mark.asyncio
async def test_summary_output_is_cleaned():
    llm = AsyncMock()
    llm.chat_json.return_value = {
        "title": "T" * 120,
        "summary": ["  First point.  ", "", "Second point."],
        "tags": ["Machine Learning", "machine learning", "42", "AI"],
        "type": "watch",
        "category": "TECH",
    }

    summary = await Summarizer(llm).summarize(LONG_CONTENT, "https://example.com", "example.com")

    assert len(summary.title) == 80
    assert summary.summary == ["First point.", "Second point."]
    assert summary.tags == ["machine learning", "ai"]
    assert summary.type == "reference"
    assert summary.category == "other"


@pytest.mark.asyncio
async def test_llm_failure_returns_failed_summary():
    llm = AsyncMock()
    llm.chat_json.side_effect = LLMError("boom")

    summary = await Summarizer(llm).summarize(LONG_CONTENT, "https://example.com", "example.com", title="Raft")

    assert summary.title == "Raft"
    assert summary.summary == [FAILED_SUMMARY]
    assert summary.tags == ["llm_failed"]
    assert summary.is_fallback


@pytest.mark.asyncio
async def test_summarize_image():
    llm = AsyncMock()
    llm.settings = Settings()
    llm.chat_json.return_value = {"summary": ["Chart shows growth."], "tags": ["charts"], "category": "finance"}

    summary = await Summarizer(llm).summarize_image(
        "https://cdn.example.com/img.jpg", "https://instagram.com/p/x/", "instagram.com",
    )

    assert summary.title == "Image Content"
    assert summary.category == "finance"
    kwargs = llm.chat_json.call_args.kwargs
    assert kwargs["task_type"] == TaskType.VISION
    assert kwargs["max_tokens"] == 1500


@pytest.mark.asyncio
async def test_summarize_image_failure():
    llm = AsyncMock()
    llm.settings = Settings()
    llm.chat_json.side_effect = LLMError("vision down")

    summary = await Summarizer(llm).summarize_image(
        "https://cdn.example.com/img.jpg", "https://instagram.com/p/x/", "instagram.com",
    )

    assert summary.summary == [IMAGE_FAILED_SUMMARY]
    assert summary.tags == ["instagram"]


@pytest.mark.asyncio
@pytest.mark.parametrize("bullets", ["one string bullet", {"a": 1}, 42, None])
async def test_summary_that_is_not_a_list_falls_back(bullets):
    llm = AsyncMock()
    llm.chat_json.return_value = {
        "title": "Raft",
        "summary": bullets,
        "tags": "python",
        "type": ["learn"],
        "category": {"name": "tech"},
    }

    summary = await Summarizer(llm).summarize(LONG_CONTENT, "https://example.com", "example.com")

    assert summary.title == "Raft"
    assert summary.summary == [UNAVAILABLE_SUMMARY]
    assert summary.tags == []
    assert summary.type == "reference"
    assert summary.category == "other"


@pytest.mark.asyncio
async def test_image_summary_that_is_not_a_list_falls_back():
    llm = AsyncMock()
    llm.settings = Settings()
    llm.chat_json.return_value = {"summary": "A chart.", "tags": ["charts"]}

    summary = await Summarizer(llm).summarize_image(
        "https://cdn.example.com/img.jpg", "https://instagram.com/p/x/", "instagram.com",
    )

    assert summary.summary == [IMAGE_ANALYZED_SUMMARY]
    assert summary.tags == ["charts"]


@pytest.mark.asyncio
async def test_summarizers_share_one_client_until_closed():
    shared = get_llm_client()
    assert Summarizer().llm is shared
    assert get_llm_client() is shared

    http = shared._get_client()
    await close_llm_client()

    assert http.is_closed
    assert get_llm_client() is not shared
    await close_llm_client()
