"""Adapters for models served through OpenRouter's OpenAI-compatible API."""

from __future__ import annotations

import logging
from functools import lru_cache

import httpx
from openai import AsyncOpenAI

from aihub import settings

from .base import ErrorKind, ProviderAdapter
from .openai_chatgpt import classify_openai_error

_LOG = logging.getLogger(__name__)


@lru_cache(maxsize=settings.PROVIDER_CLIENT_CACHE_SIZE)
def get_openrouter_client(api_key: str, timeout: float) -> AsyncOpenAI:
    """Get or create the OpenRouter client for an API key and timeout."""
    return AsyncOpenAI(
        api_key=api_key,
        base_url=settings.OPENROUTER_BASE_URL,
        timeout=timeout,
    )


class OpenRouterAdapter(ProviderAdapter):
    """Chat completions against an OpenRouter-hosted model.

    Credentials are OpenRouter keys. Validation hits ``GET /key``, which costs
    nothing and reports whether the key is live.
    """

    def _get_client(self, credential: str) -> AsyncOpenAI:
        return get_openrouter_client(credential, self.timeout)

    async def _complete(self, prompt: str, credential: str) -> str:
        client = self._get_client(credential)
        _LOG.debug("OpenRouter %s: model=%s, prompt_len=%d", self.name, self.model, len(prompt))
        resp = await client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        choice = resp.choices[0]
        content = choice.message.content
        _LOG.info(
            "OpenRouter %s result: finish_reason=%s, content_len=%d",
            self.name,
            getattr(choice, "finish_reason", None),
            len(content) if content else 0,
        )
        return (content or "").strip()

    async def _check_credential(self, credential: str) -> bool:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(
                f"{settings.OPENROUTER_BASE_URL}/key",
                headers={"Authorization": f"Bearer {credential}"},
            )
        _LOG.info("OpenRouter %s key check: status %s", self.name, resp.status_code)
        return resp.is_success

    def _classify_error(self, exc: Exception) -> tuple[ErrorKind, str]:
        return classify_openai_error(exc)


class GeminiAdapter(OpenRouterAdapter):
    name = "Gemini"

    def __init__(self, model: str = settings.GEMINI_MODEL, **kwargs) -> None:
        super().__init__(model, **kwargs)


class DeepSeekAdapter(OpenRouterAdapter):
    name = "DeepSeek"

    def __init__(self, model: str = settings.DEEPSEEK_MODEL, **kwargs) -> None:
        super().__init__(model, **kwargs)
