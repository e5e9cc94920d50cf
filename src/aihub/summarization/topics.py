"""Keyword and intent extraction for context summaries."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from aihub.settings import TOPIC_TERMS_PER_GROUP, TOPIC_TERMS_PER_MESSAGE

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "can", "this", "that", "these", "those", "i", "you",
        "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
    }
)

_WORD_SEPARATORS = re.compile(r"[\s.,!?;:()\[\]{}\"']+")

# Checked against the lower-cased message. The keyword found earliest in the
# message decides the label; on equal positions the earlier rule wins.
INTENT_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("explain", "what is", "how does"), "seeking explanation"),
    (("help", "how to"), "requesting help"),
    (("code", "programming", "function"), "programming assistance"),
    (("error", "problem", "issue"), "troubleshooting"),
    (("create", "build", "make"), "creation request"),
    (("compare", "difference", "vs"), "comparison request"),
    (("example", "show me"), "example request"),
)


def tokenize(text: str) -> list[str]:
    """Lower-cased words longer than three characters that aren't stop words."""
    return [
        word
        for word in _WORD_SEPARATORS.split(text.lower())
        if len(word) > 3 and word not in STOP_WORDS
    ]


def _most_frequent(words: list[str], limit: int) -> list[str]:
    # Counter keeps first-seen order and most_common() sorts stably.
    return [word for word, _ in Counter(words).most_common(limit)]


def extract_key_topics(
    texts: Iterable[str],
    *,
    limit: int = TOPIC_TERMS_PER_GROUP,
    per_message: int = TOPIC_TERMS_PER_MESSAGE,
) -> list[str]:
    """Return up to ``limit`` representative terms for a group of messages.

    Each message nominates its ``per_message`` most frequent terms. The
    nominees are then ranked by how often they occur across the whole group;
    ties keep the order in which terms were first nominated.
    """
    group_counts: Counter[str] = Counter()
    nominees: list[str] = []
    for text in texts:
        words = tokenize(text)
        group_counts.update(words)
        for term in _most_frequent(words, per_message):
            if term not in nominees:
                nominees.append(term)

    ranked = sorted(nominees, key=lambda term: group_counts[term], reverse=True)
    return ranked[:limit]


def extract_intent(message: str) -> str:
    """Label what the user is after, or echo the first four words.

    The rule whose keyword occurs earliest in the message wins; rule order
    only breaks ties at the same position. So "How do I fix this error in my
    code?" is troubleshooting, and "This error needs explaining" is too, where
    a strict first-rule-wins scan would say seeking explanation.
    """
    lowered = message.lower()
    best: tuple[int, int, str] | None = None
    for rule_index, (keywords, label) in enumerate(INTENT_RULES):
        for keyword in keywords:
            position = lowered.find(keyword)
            if position == -1:
                continue
            candidate = (position, rule_index, label)
            if best is None or candidate < best:
                best = candidate
    if best is not None:
        return best[2]
    return " ".join(message.split()[:4]).lower()
