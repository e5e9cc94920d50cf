"""Bounded context summaries that prime outbound provider requests."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from aihub.models import ContextSummary, Message
from aihub.settings import CONTEXT_WINDOW_MESSAGES, SUMMARY_MAX_CHARS

from .topics import extract_intent, extract_key_topics

_LOG = logging.getLogger(__name__)

ELLIPSIS = "..."


class SummaryStore(Protocol):
    """Persistence the summarizer needs: one summary row per thread."""

    def get_summary(self, thread_id: str) -> ContextSummary | None:
        ...

    def upsert_summary(self, thread_id: str, text: str, count: int) -> None:
        ...


def truncate_summary(text: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    """Cut ``text`` to ``max_chars``, ending in an ellipsis when shortened."""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - len(ELLIPSIS)] + ELLIPSIS


def select_window(
    messages: Sequence[Message], size: int = CONTEXT_WINDOW_MESSAGES
) -> list[Message]:
    """Return the last ``size`` messages by creation time, oldest first."""
    ordered = sorted(messages, key=lambda m: m.created_at)
    return ordered[-size:] if size > 0 else []


def generate_context_summary(messages: Sequence[Message]) -> str:
    """
    Build the digest for an already-windowed list of messages.

    Args:
        messages: Messages in creation order

    Returns:
        Summary text no longer than ``SUMMARY_MAX_CHARS``, or "" when
        ``messages`` is empty
    """
    if not messages:
        return ""

    user_texts = [m.content for m in messages if m.role == "user"]
    assistant_texts = [m.content for m in messages if m.role == "assistant"]

    parts = ["Recent conversation context: "]

    user_topics = extract_key_topics(user_texts)
    if user_topics:
        parts.append(f"User discussed: {', '.join(user_topics)}. ")

    assistant_topics = extract_key_topics(assistant_texts)
    if assistant_topics:
        parts.append(f"AI provided: {', '.join(assistant_topics)}. ")

    parts.append(f"Total messages: {len(messages)}. ")

    if user_texts:
        intent = extract_intent(user_texts[-1])
        if intent:
            parts.append(f"Current focus: {intent}.")

    return truncate_summary("".join(parts))


class ContextSummarizer:
    """Keeps one rolling summary per thread up to date."""

    def __init__(self, store: SummaryStore, window_size: int = CONTEXT_WINDOW_MESSAGES):
        self.store = store
        self.window_size = window_size

    def update_summary(self, thread_id: str, recent_messages: Sequence[Message]) -> ContextSummary | None:
        """Recompute the summary from the latest messages and upsert it.

        Does nothing (and returns None) when ``recent_messages`` is empty.
        """
        window = select_window(recent_messages, self.window_size)
        if not window:
            return None

        text = generate_context_summary(window)
        self.store.upsert_summary(thread_id, text, len(window))
        _LOG.info(
            "Context summary for thread %s updated from %d messages (%d chars)",
            thread_id,
            len(window),
            len(text),
        )
        return self.store.get_summary(thread_id)

    def get_summary(self, thread_id: str) -> str:
        """Current summary text, or "" when the thread has none yet."""
        summary = self.store.get_summary(thread_id)
        return summary.summary_text if summary else ""
