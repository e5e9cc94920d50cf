# providers/__init__.py
from collections.abc import Iterable

from .anthropic import ClaudeAdapter
from .base import ErrorKind, ProviderAdapter, ProviderReply, compose_prompt
from .openai_chatgpt import ChatGPTAdapter
from .openrouter import DeepSeekAdapter, GeminiAdapter, OpenRouterAdapter

__all__ = [
    "ProviderAdapter",
    "ProviderReply",
    "ErrorKind",
    "compose_prompt",
    "ChatGPTAdapter",
    "ClaudeAdapter",
    "OpenRouterAdapter",
    "GeminiAdapter",
    "DeepSeekAdapter",
    "PROVIDER_NAMES",
    "build_registry",
]

PROVIDER_NAMES: tuple[str, ...] = ("ChatGPT", "Gemini", "Claude", "DeepSeek")


def default_adapters() -> list[ProviderAdapter]:
    return [ChatGPTAdapter(), GeminiAdapter(), ClaudeAdapter(), DeepSeekAdapter()]


def build_registry(adapters: Iterable[ProviderAdapter] | None = None) -> dict[str, ProviderAdapter]:
    """Return the provider-name -> adapter map handed to the orchestrator."""
    registry: dict[str, ProviderAdapter] = {}
    for adapter in default_adapters() if adapters is None else adapters:
        name = adapter.identify()
        if not name:
            raise ValueError(f"{type(adapter).__name__} has no provider name")
        if name in registry:
            raise ValueError(f"Duplicate provider name: {name}")
        registry[name] = adapter
    return registry
