"""Provider adapter that calls Anthropic's Claude models."""
from __future__ import annotations

import logging
from functools import lru_cache

from anthropic import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncAnthropic,
    RateLimitError,
)

from aihub import settings

from .base import ErrorKind, ProviderAdapter

_log = logging.getLogger(__name__)


# One client per (API key, timeout); reused across requests.
@lru_cache(maxsize=settings.PROVIDER_CLIENT_CACHE_SIZE)
def get_anthropic_client(api_key: str, timeout: float) -> AsyncAnthropic:
    return AsyncAnthropic(api_key=api_key, timeout=timeout)


class ClaudeAdapter(ProviderAdapter):
    """Anthropic Messages API backend.

    Validation sends a one-token request, the cheapest call that proves the
    key can actually generate.
    """

    name = "Claude"

    def __init__(self, model: str = settings.CLAUDE_MODEL, **kwargs) -> None:
        super().__init__(model, **kwargs)

    def _get_client(self, credential: str) -> AsyncAnthropic:
        return get_anthropic_client(credential, self.timeout)

    async def _complete(self, prompt: str, credential: str) -> str:
        client = self._get_client(credential)
        _log.debug("Claude: model=%s, prompt_len=%d", self.model, len(prompt))
        response = await client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
        )
        # SDK returns a list of content blocks; aggregate text blocks.
        parts: list[str] = []
        for block in getattr(response, "content", []) or []:
            text = getattr(block, "text", None)
            if text:
                parts.append(text)
        return "".join(parts).strip()

    async def _check_credential(self, credential: str) -> bool:
        await self._get_client(credential).messages.create(
            model=self.model,
            max_tokens=1,
            messages=[{"role": "user", "content": "Hello"}],
        )
        return True

    def _classify_error(self, exc: Exception) -> tuple[ErrorKind, str]:
        if isinstance(exc, APITimeoutError):
            return ErrorKind.TIMEOUT, "Request timed out"
        if isinstance(exc, APIConnectionError):
            return ErrorKind.CONNECTION, str(exc) or "Connection error"
        if isinstance(exc, RateLimitError):
            return ErrorKind.RATE_LIMIT, f"{exc.status_code} - {exc.message}"
        if isinstance(exc, APIStatusError):
            return ErrorKind.API_STATUS, f"{exc.status_code} - {exc.message}"
        return super()._classify_error(exc)
