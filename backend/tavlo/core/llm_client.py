"""
Client for OpenAI-compatible chat completions APIs
"""
import json
import time
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from tavlo.core.config import get_settings
from tavlo.core.errors import LLMError
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.metrics import (llm_errors_total, llm_request_duration_seconds,
                                llm_requests_total, llm_tokens_total)

logger = LoggingConfig.get_logger(__name__)


class TaskType(str, Enum):
    """Task type enumeration, used for model selection and metric labels"""
    SUMMARIZE = "summarize"
    VISION = "vision"


class ChatResponse(BaseModel):
    """Parsed chat completion"""
    model: str
    content: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class LLMClient:
    """
    Thin async client for the /chat/completions endpoint

    Text tasks go to the summary model, image tasks to the vision model.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._settings = None
        self._client = client

    @property
    def settings(self):
        """Lazy load settings"""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.llm_api_key)

    def select_model_for_task(self, task_type: TaskType) -> str:
        if task_type == TaskType.VISION:
            return self.settings.llm_vision_model
        return self.settings.llm_model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.llm_base_url.rstrip("/"),
                timeout=httpx.Timeout(self.settings.llm_timeout_seconds, connect=5.0),
            )
        return self._client

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        task_type: TaskType = TaskType.SUMMARIZE,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = True,
    ) -> ChatResponse:
        """
        Send a chat completion request

        Raises:
            LLMError: on transport errors, non-2xx responses or empty output
        """
        model = self.select_model_for_task(task_type)
        if not self.is_configured:
            llm_errors_total.labels(model=model, error_type="not_configured").inc()
            raise LLMError("LLM API key is not configured")

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.settings.llm_temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.settings.llm_max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        start_time = time.time()
        try:
            response = await self._get_client().post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.llm_api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            llm_requests_total.labels(model=model, task_type=task_type.value, status="error").inc()
            llm_errors_total.labels(model=model, error_type=f"http_{e.response.status_code}").inc()
            raise LLMError(f"LLM request failed with status {e.response.status_code}") from e
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            llm_requests_total.labels(model=model, task_type=task_type.value, status="error").inc()
            llm_errors_total.labels(model=model, error_type=type(e).__name__).inc()
            raise LLMError(f"LLM request failed: {e}") from e
        finally:
            llm_request_duration_seconds.labels(model=model, task_type=task_type.value).observe(
                time.time() - start_time
            )

        choices = data.get("choices") or []
        content = ((choices[0].get("message") or {}).get("content") if choices else None) or ""
        if not content.strip():
            llm_requests_total.labels(model=model, task_type=task_type.value, status="empty").inc()
            raise LLMError("Empty response from LLM")

        usage = data.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens", 0)
        completion_tokens = usage.get("completion_tokens", 0)
        llm_tokens_total.labels(model=model, type="input").inc(prompt_tokens)
        llm_tokens_total.labels(model=model, type="output").inc(completion_tokens)
        llm_requests_total.labels(model=model, task_type=task_type.value, status="success").inc()

        logger.debug(
            "LLM request completed",
            extra={"model": model, "task_type": task_type.value, "completion_tokens": completion_tokens},
        )
        return ChatResponse(
            model=data.get("model") or model,
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )

    async def chat_json(self, messages: List[Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        """Chat completion parsed as a JSON object"""
        response = await self.chat(messages, json_mode=True, **kwargs)
        try:
            parsed = json.loads(response.content)
        except json.JSONDecodeError as e:
            raise LLMError(f"LLM returned invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise LLMError("LLM returned JSON that is not an object")
        return parsed

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Global client instance, closed in the app lifespan
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get global LLM client instance"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


async def close_llm_client():
    """Close the global client's connection pool"""
    global _llm_client
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None
