"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from aihub.chat_db import ChatStore
from aihub.models import Message
from aihub.providers import ProviderAdapter, build_registry
from aihub.summarization import ContextSummarizer
from aihub.orchestrator import ConversationOrchestrator


class FakeAdapter(ProviderAdapter):
    """Adapter that answers from memory instead of the network.

    ``reply`` may be a string or an exception instance to raise from the
    request hook, so the base class's error handling is exercised for real.
    """

    def __init__(self, name: str, reply: str | Exception = "ok", *, valid: bool = True, **kwargs) -> None:
        super().__init__("fake-model", **kwargs)
        self.name = name
        self.reply = reply
        self.valid = valid
        self.prompts: list[tuple[str, str]] = []

    async def _complete(self, prompt: str, credential: str) -> str:
        self.prompts.append((prompt, credential))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply

    async def _check_credential(self, credential: str) -> bool:
        return self.valid


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir):
    """Path for a throwaway database file."""
    yield str(temp_dir / "test.db")


@pytest.fixture
def store(temp_db):
    return ChatStore(temp_db)


@pytest.fixture
def adapters():
    """One fake adapter per default provider name."""
    return {
        name: FakeAdapter(name, f"{name} says hello")
        for name in ("ChatGPT", "Gemini", "Claude", "DeepSeek")
    }


@pytest.fixture
def registry(adapters):
    return build_registry(adapters.values())


@pytest.fixture
def summarizer(store):
    return ContextSummarizer(store)


@pytest.fixture
def orchestrator(store, registry, summarizer):
    return ConversationOrchestrator(store, registry, summarizer)


@pytest.fixture
def thread(store):
    return store.create_thread("user-1", "Side by side")


def make_message(
    role: str,
    content: str,
    *,
    minute: int = 0,
    thread_id: str = "thread-1",
    provider_name: str = "ChatGPT",
) -> Message:
    """Build an in-memory message created ``minute`` minutes after a fixed epoch."""
    base = datetime(2025, 9, 20, 12, 0, tzinfo=timezone.utc)
    return Message(
        id=f"{role}-{minute}",
        thread_id=thread_id,
        provider_name=provider_name,
        content=content,
        role=role,  # type: ignore[arg-type]
        created_at=base + timedelta(minutes=minute),
    )
