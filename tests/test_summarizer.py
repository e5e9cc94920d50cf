"""Tests for context summary generation and persistence."""

from __future__ import annotations

import random

from conftest import make_message

from aihub.summarization import (
    ContextSummarizer,
    generate_context_summary,
    select_window,
    truncate_summary,
)


class TestGenerateContextSummary:
    def test_full_shape(self):
        messages = [
            make_message("user", "How do I fix this error in my code?", minute=0),
            make_message("assistant", "Check the stack trace and the error message first.", minute=1),
        ]
        assert generate_context_summary(messages) == (
            "Recent conversation context: "
            "User discussed: error, code. "
            "AI provided: check, stack, trace. "
            "Total messages: 2. "
            "Current focus: troubleshooting."
        )

    def test_without_user_messages_has_no_focus(self):
        messages = [make_message("assistant", "Hello there friend", minute=0)]
        assert generate_context_summary(messages) == (
            "Recent conversation context: AI provided: hello, there, friend. Total messages: 1. "
        )

    def test_focus_uses_latest_user_message(self):
        messages = [
            make_message("user", "Explain generators", minute=0),
            make_message("assistant", "Generators yield values lazily", minute=1),
            make_message("user", "Compare them with lists", minute=2),
        ]
        assert generate_context_summary(messages).endswith("Current focus: comparison request.")

    def test_system_messages_count_but_add_no_topics(self):
        messages = [
            make_message("system", "Respond tersely always", minute=0),
            make_message("user", "ok", minute=1),
        ]
        assert generate_context_summary(messages) == (
            "Recent conversation context: Total messages: 2. Current focus: ok."
        )

    def test_empty(self):
        assert generate_context_summary([]) == ""

    def test_long_summary_is_truncated_to_limit(self):
        long_words = " ".join(["x" * 150, "y" * 150, "z" * 150, "w" * 150])
        summary = generate_context_summary([make_message("user", long_words)])
        assert len(summary) == 500
        assert summary.endswith("...")
        assert summary.startswith("Recent conversation context: User discussed: ")


class TestTruncateSummary:
    def test_at_limit_is_untouched(self):
        assert truncate_summary("a" * 500) == "a" * 500

    def test_over_limit(self):
        assert truncate_summary("a" * 501) == "a" * 497 + "..."


class TestSelectWindow:
    def test_keeps_last_fifteen_in_creation_order(self):
        messages = [make_message("user", f"message {i}", minute=i) for i in range(20)]
        shuffled = messages[:]
        random.Random(7).shuffle(shuffled)

        window = select_window(shuffled)

        assert [m.content for m in window] == [f"message {i}" for i in range(5, 20)]

    def test_short_history_is_kept_whole(self):
        messages = [make_message("user", "only one")]
        assert select_window(messages) == messages


class TestContextSummarizer:
    def test_get_summary_is_empty_before_first_update(self, store, thread):
        summarizer = ContextSummarizer(store)
        assert summarizer.get_summary(thread.id) == ""

    def test_update_creates_summary(self, store, thread):
        summarizer = ContextSummarizer(store)
        messages = [make_message("user", "Explain decorators please", thread_id=thread.id)]

        summary = summarizer.update_summary(thread.id, messages)

        assert summary is not None
        assert summary.thread_id == thread.id
        assert summary.source_message_count == 1
        assert summarizer.get_summary(thread.id) == summary.summary_text
        assert "Current focus: seeking explanation." in summary.summary_text

    def test_empty_update_is_noop(self, store, thread):
        summarizer = ContextSummarizer(store)
        summarizer.update_summary(thread.id, [make_message("user", "first words here", thread_id=thread.id)])
        before = store.get_summary(thread.id)

        assert summarizer.update_summary(thread.id, []) is None

        after = store.get_summary(thread.id)
        assert after == before

    def test_empty_update_creates_nothing(self, store, thread):
        ContextSummarizer(store).update_summary(thread.id, [])
        assert store.get_summary(thread.id) is None

    def test_source_count_is_capped_at_fifteen(self, store, thread):
        summarizer = ContextSummarizer(store)
        for count, expected in ((4, 4), (15, 15), (20, 15)):
            messages = [make_message("user", f"topic number {i}", minute=i) for i in range(count)]
            summary = summarizer.update_summary(thread.id, messages)
            assert summary.source_message_count == expected
            assert f"Total messages: {expected}." in summary.summary_text

    def test_update_overwrites_in_place(self, store, thread):
        summarizer = ContextSummarizer(store)
        first = summarizer.update_summary(thread.id, [make_message("user", "Explain closures")])
        second = summarizer.update_summary(
            thread.id,
            [
                make_message("user", "Explain closures", minute=0),
                make_message("user", "Build a parser", minute=1),
            ],
        )

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert second.source_message_count == 2
        assert second.summary_text.endswith("Current focus: creation request.")

    def test_get_summary_is_idempotent(self, store, thread):
        summarizer = ContextSummarizer(store)
        summarizer.update_summary(thread.id, [make_message("user", "What is a closure")])
        assert summarizer.get_summary(thread.id) == summarizer.get_summary(thread.id)
