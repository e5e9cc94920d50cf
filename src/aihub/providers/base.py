from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from aihub import settings

_LOG = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    RATE_LIMIT = "rate_limit"
    API_STATUS = "api_status"
    EMPTY_RESPONSE = "empty_response"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ProviderReply:
    """Outcome of one provider call: reply text, or a failure kind and detail."""

    text: str = ""
    error: ErrorKind | None = None
    detail: str = ""

    @classmethod
    def success(cls, text: str) -> ProviderReply:
        return cls(text=text)

    @classmethod
    def failure(cls, kind: ErrorKind, detail: str) -> ProviderReply:
        return cls(error=kind, detail=detail)

    @property
    def ok(self) -> bool:
        return self.error is None

    def render(self) -> str:
        """Text to show in the conversation log."""
        return self.text if self.ok else f"Error: {self.detail}"


def compose_prompt(message: str, prior_context: str | None = None) -> str:
    """Prefix ``message`` with the thread's context summary when there is one."""
    if not prior_context:
        return message
    return f"{prior_context}\n\nUser: {message}"


class ProviderAdapter(ABC):
    """Uniform wrapper around one AI chat backend.

    Subclasses implement ``_complete`` and ``_check_credential``; the public
    ``send`` and ``validate`` bound them with a timeout and turn every failure
    into data instead of raising.
    """

    name: str = ""

    def __init__(
        self,
        model: str,
        *,
        timeout: float | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> None:
        self.model = model
        self.timeout = settings.PROVIDER_TIMEOUT if timeout is None else timeout
        self.max_tokens = settings.PROVIDER_MAX_TOKENS if max_tokens is None else max_tokens
        self.temperature = settings.PROVIDER_TEMPERATURE if temperature is None else temperature

    def identify(self) -> str:
        return self.name

    async def send(
        self,
        message: str,
        credential: str,
        prior_context: str | None = None,
    ) -> ProviderReply:
        prompt = compose_prompt(message, prior_context)
        try:
            text = await asyncio.wait_for(self._complete(prompt, credential), self.timeout)
        except asyncio.TimeoutError:
            _LOG.error("%s request timed out after %.1fs (model=%s)", self.name, self.timeout, self.model)
            return ProviderReply.failure(ErrorKind.TIMEOUT, f"Request timed out after {self.timeout:g}s")
        except Exception as exc:  # noqa: BLE001
            kind, detail = self._classify_error(exc)
            if kind is ErrorKind.RATE_LIMIT:
                _LOG.warning("%s rate limit hit for model %s: %s", self.name, self.model, detail)
            else:
                _LOG.error("%s %s error for model %s: %s", self.name, kind.value, self.model, detail)
            return ProviderReply.failure(kind, detail)

        if not text:
            _LOG.warning("%s returned an empty response for model=%s", self.name, self.model)
            return ProviderReply.failure(ErrorKind.EMPTY_RESPONSE, "No response received")
        return ProviderReply.success(text)

    async def validate(self, credential: str) -> bool:
        """Make the cheapest possible call with ``credential``; never raises."""
        try:
            return bool(await asyncio.wait_for(self._check_credential(credential), self.timeout))
        except Exception as exc:  # noqa: BLE001
            _LOG.info("%s credential check failed: %s", self.name, exc.__class__.__name__)
            return False

    def _classify_error(self, exc: Exception) -> tuple[ErrorKind, str]:
        return ErrorKind.UNEXPECTED, str(exc) or exc.__class__.__name__

    @abstractmethod
    async def _complete(self, prompt: str, credential: str) -> str:
        """Return the provider's reply text for a single user prompt."""
        raise NotImplementedError

    @abstractmethod
    async def _check_credential(self, credential: str) -> bool:
        raise NotImplementedError
