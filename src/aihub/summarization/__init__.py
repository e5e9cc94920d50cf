"""Context summarization for chat threads."""

from .summarizer import (
    ContextSummarizer,
    SummaryStore,
    generate_context_summary,
    select_window,
    truncate_summary,
)
from .topics import STOP_WORDS, extract_intent, extract_key_topics, tokenize

__all__ = [
    "ContextSummarizer",
    "SummaryStore",
    "generate_context_summary",
    "select_window",
    "truncate_summary",
    "STOP_WORDS",
    "extract_intent",
    "extract_key_topics",
    "tokenize",
]
