"""Centralized settings read from the environment once at import.

Secrets (provider API keys) are never configured here: they are stored per
user in the ``api_keys`` table and handed to adapters by value.
"""

from __future__ import annotations

import os
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw.lstrip("-").isdigit() else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


# --------------------- Storage ---------------------

DEFAULT_DB = Path(__file__).resolve().with_name("aihub.db")
DB_PATH = Path(os.getenv("AIHUB_DB_PATH", str(DEFAULT_DB))).expanduser()


# --------------------- Providers ---------------------

# Every adapter call is bounded by this; a timeout becomes an error reply.
PROVIDER_TIMEOUT: float = _env_float("PROVIDER_TIMEOUT", 60.0)
PROVIDER_MAX_TOKENS: int = _env_int("PROVIDER_MAX_TOKENS", 1000)
PROVIDER_TEMPERATURE: float = _env_float("PROVIDER_TEMPERATURE", 0.7)

CHATGPT_MODEL: str = os.getenv("CHATGPT_MODEL", "gpt-4o-mini")
CLAUDE_MODEL: str = os.getenv("CLAUDE_MODEL", "claude-3-sonnet-20240229")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "google/gemini-2.0-flash-exp:free")
DEEPSEEK_MODEL: str = os.getenv("DEEPSEEK_MODEL", "deepseek/deepseek-chat-v3.1:free")
OPENROUTER_BASE_URL: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

# SDK clients are cached per (api key, timeout); least recently used are dropped.
PROVIDER_CLIENT_CACHE_SIZE: int = max(1, _env_int("PROVIDER_CLIENT_CACHE_SIZE", 64))


# --------------------- Context summaries ---------------------

CONTEXT_WINDOW_MESSAGES = 15
SUMMARY_MAX_CHARS = 500
TOPIC_TERMS_PER_GROUP = 5
TOPIC_TERMS_PER_MESSAGE = 3


# --------------------- Broadcast ---------------------

BROADCAST_MAX_CONCURRENCY: int = max(1, _env_int("BROADCAST_MAX_CONCURRENCY", 4))


# --------------------- Server ---------------------

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = _env_int("API_PORT", 8000)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
