"""Records shared by the store, the summarizer and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Role = Literal["user", "assistant", "system"]
ROLES: tuple[str, ...] = ("user", "assistant", "system")


@dataclass(frozen=True)
class Message:
    """A single role-tagged entry in a thread. Never edited after creation."""

    id: str
    thread_id: str
    provider_name: str
    content: str
    role: Role
    created_at: datetime
    conversation_id: str | None = None
    is_error: bool = False


@dataclass
class ChatThread:
    """A top-level chat session, or a provider-bound sub-conversation.

    Sub-conversations have ``parent_id`` set to the thread they live in and a
    ``provider_name``. A thread without a provider is a multi-provider
    container.
    """

    id: str
    owner_user_id: str
    title: str
    created_at: datetime
    updated_at: datetime
    provider_name: str | None = None
    parent_id: str | None = None


@dataclass
class ContextSummary:
    """The single live digest for a thread, overwritten on every update."""

    id: str
    thread_id: str
    summary_text: str
    source_message_count: int
    created_at: datetime
    updated_at: datetime


@dataclass
class Credential:
    owner_user_id: str
    provider_name: str
    secret_text: str
    updated_at: datetime
