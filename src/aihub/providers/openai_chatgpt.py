from __future__ import annotations

import logging
from functools import lru_cache

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from aihub import settings

from .base import ErrorKind, ProviderAdapter

_LOG = logging.getLogger(__name__)


@lru_cache(maxsize=settings.PROVIDER_CLIENT_CACHE_SIZE)
def get_openai_client(api_key: str, timeout: float) -> AsyncOpenAI:
    """Return a cached client for one API key and timeout."""
    return AsyncOpenAI(api_key=api_key, timeout=timeout)


def classify_openai_error(exc: Exception) -> tuple[ErrorKind, str]:
    """Map an ``openai`` SDK exception onto an error kind and a readable detail.

    Shared by every adapter that talks to an OpenAI-compatible endpoint.
    """
    if isinstance(exc, APITimeoutError):
        return ErrorKind.TIMEOUT, "Request timed out"
    if isinstance(exc, APIConnectionError):
        return ErrorKind.CONNECTION, str(exc) or "Connection error"
    if isinstance(exc, RateLimitError):
        return ErrorKind.RATE_LIMIT, f"{exc.status_code} - {exc.message}"
    if isinstance(exc, APIStatusError):
        return ErrorKind.API_STATUS, f"{exc.status_code} - {exc.message}"
    return ErrorKind.UNEXPECTED, str(exc) or exc.__class__.__name__


class ChatGPTAdapter(ProviderAdapter):
    """OpenAI Chat Completions backend, keyed by the user's own OpenAI key."""

    name = "ChatGPT"

    def __init__(self, model: str = settings.CHATGPT_MODEL, **kwargs) -> None:
        super().__init__(model, **kwargs)

    def _get_client(self, credential: str) -> AsyncOpenAI:
        return get_openai_client(credential, self.timeout)

    async def _complete(self, prompt: str, credential: str) -> str:
        client = self._get_client(credential)
        _LOG.debug("ChatGPT: model=%s, prompt_len=%d", self.model, len(prompt))
        resp = await client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        choice = resp.choices[0]
        return (choice.message.content or "").strip()

    async def _check_credential(self, credential: str) -> bool:
        # Listing models is free and fails fast on a bad key.
        await self._get_client(credential).models.list()
        return True

    def _classify_error(self, exc: Exception) -> tuple[ErrorKind, str]:
        return classify_openai_error(exc)
