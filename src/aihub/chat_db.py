"""SQLite persistence for threads, messages, context summaries and API keys."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from aihub import settings
from aihub.models import ROLES, ChatThread, ContextSummary, Credential, Message

_LOG = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def init_db(db_path: str | Path) -> None:
    """Create required tables if they don't exist."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS threads (
                id TEXT PRIMARY KEY,
                owner_user_id TEXT NOT NULL,
                parent_id TEXT REFERENCES threads(id) ON DELETE CASCADE,
                title TEXT NOT NULL,
                provider_name TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_threads_owner ON threads(owner_user_id, updated_at)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_threads_parent ON threads(parent_id, created_at)"
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                thread_id TEXT NOT NULL REFERENCES threads(id) ON DELETE CASCADE,
                conversation_id TEXT REFERENCES threads(id) ON DELETE CASCADE,
                provider_name TEXT NOT NULL,
                content TEXT NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
                is_error INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_thread_time ON messages(thread_id, created_at)"
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS context_summaries (
                id TEXT PRIMARY KEY,
                thread_id TEXT NOT NULL UNIQUE REFERENCES threads(id) ON DELETE CASCADE,
                summary_text TEXT NOT NULL,
                source_message_count INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS api_keys (
                owner_user_id TEXT NOT NULL,
                provider_name TEXT NOT NULL,
                secret_text TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (owner_user_id, provider_name)
            )
            """
        )
        conn.commit()


class ChatStore:
    """Database interface used by the summarizer, orchestrator and HTTP layer."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = str(db_path if db_path is not None else settings.DB_PATH)
        init_db(self.db_path)

    # ==================== Database Connection ====================

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection with row access by name that commits on success."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        finally:
            conn.close()

    # ==================== Threads ====================

    def create_thread(
        self,
        owner_user_id: str,
        title: str,
        provider_name: str | None = None,
        *,
        parent_id: str | None = None,
    ) -> ChatThread:
        now = _now()
        thread = ChatThread(
            id=_new_id(),
            owner_user_id=owner_user_id,
            title=title,
            created_at=now,
            updated_at=now,
            provider_name=provider_name,
            parent_id=parent_id,
        )
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO threads
                (id, owner_user_id, parent_id, title, provider_name, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    thread.id,
                    owner_user_id,
                    parent_id,
                    title,
                    provider_name,
                    now.isoformat(timespec="microseconds"),
                    now.isoformat(timespec="microseconds"),
                ),
            )
        return thread

    def get_thread(self, thread_id: str) -> ChatThread | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM threads WHERE id = ?", (thread_id,)).fetchone()
        return self._row_to_thread(row) if row else None

    def list_threads(self, owner_user_id: str) -> list[ChatThread]:
        """Top-level threads for a user, most recently active first."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM threads
                WHERE owner_user_id = ? AND parent_id IS NULL
                ORDER BY updated_at DESC
                """,
                (owner_user_id,),
            )
            return [self._row_to_thread(row) for row in cursor.fetchall()]

    def list_conversations(self, thread_id: str) -> list[ChatThread]:
        """Provider-bound sub-conversations of a thread, oldest first."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM threads
                WHERE parent_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (thread_id,),
            )
            return [self._row_to_thread(row) for row in cursor.fetchall()]

    def find_conversation(self, thread_id: str, provider_name: str) -> ChatThread | None:
        """First sub-conversation of ``thread_id`` bound to ``provider_name``."""
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM threads
                WHERE parent_id = ? AND provider_name = ?
                ORDER BY created_at ASC, rowid ASC
                LIMIT 1
                """,
                (thread_id, provider_name),
            ).fetchone()
        return self._row_to_thread(row) if row else None

    def get_or_create_conversation(self, thread: ChatThread, provider_name: str) -> ChatThread:
        existing = self.find_conversation(thread.id, provider_name)
        if existing is not None:
            return existing
        _LOG.info("Creating %s conversation in thread %s", provider_name, thread.id)
        return self.create_thread(
            thread.owner_user_id,
            f"{provider_name} Chat",
            provider_name,
            parent_id=thread.id,
        )

    def touch_thread_timestamp(self, thread_id: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE threads SET updated_at = ? WHERE id = ?",
                (_now().isoformat(timespec="microseconds"), thread_id),
            )

    def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread with its sub-conversations, messages and summary."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM threads WHERE id = ?", (thread_id,))
            return cursor.rowcount > 0

    def _row_to_thread(self, row: sqlite3.Row) -> ChatThread:
        return ChatThread(
            id=row["id"],
            owner_user_id=row["owner_user_id"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            provider_name=row["provider_name"],
            parent_id=row["parent_id"],
        )

    # ==================== Messages ====================

    def append_message(
        self,
        thread_id: str,
        role: str,
        provider_name: str,
        text: str,
        *,
        conversation_id: str | None = None,
        is_error: bool = False,
    ) -> Message:
        if role not in ROLES:
            raise ValueError(f"Invalid message role: {role!r}")
        message = Message(
            id=_new_id(),
            thread_id=thread_id,
            provider_name=provider_name,
            content=text,
            role=role,  # type: ignore[arg-type]
            created_at=_now(),
            conversation_id=conversation_id,
            is_error=is_error,
        )
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO messages
                (id, thread_id, conversation_id, provider_name, content, role, is_error, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    thread_id,
                    conversation_id,
                    provider_name,
                    text,
                    role,
                    int(is_error),
                    message.created_at.isoformat(timespec="microseconds"),
                ),
            )
        return message

    def list_recent_messages(self, thread_id: str, limit: int) -> list[Message]:
        """Get the N most recent messages of a thread, oldest first.

        Covers every sub-conversation of the thread.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM messages
                WHERE thread_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (thread_id, limit),
            )
            messages = [self._row_to_message(row) for row in cursor.fetchall()]
        return list(reversed(messages))

    def list_messages(self, thread_id: str, conversation_id: str | None = None) -> list[Message]:
        with self._get_connection() as conn:
            if conversation_id is None:
                cursor = conn.execute(
                    "SELECT * FROM messages WHERE thread_id = ? ORDER BY created_at ASC, rowid ASC",
                    (thread_id,),
                )
            else:
                cursor = conn.execute(
                    """
                    SELECT * FROM messages
                    WHERE thread_id = ? AND conversation_id = ?
                    ORDER BY created_at ASC, rowid ASC
                    """,
                    (thread_id, conversation_id),
                )
            return [self._row_to_message(row) for row in cursor.fetchall()]

    def count_messages(self, thread_id: str) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM messages WHERE thread_id = ?", (thread_id,))
            return cursor.fetchone()[0]

    def _row_to_message(self, row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            thread_id=row["thread_id"],
            provider_name=row["provider_name"],
            content=row["content"],
            role=row["role"],
            created_at=datetime.fromisoformat(row["created_at"]),
            conversation_id=row["conversation_id"],
            is_error=bool(row["is_error"]),
        )

    # ==================== Context Summaries ====================

    def get_summary(self, thread_id: str) -> ContextSummary | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM context_summaries WHERE thread_id = ?", (thread_id,)
            ).fetchone()
        if row is None:
            return None
        return ContextSummary(
            id=row["id"],
            thread_id=row["thread_id"],
            summary_text=row["summary_text"],
            source_message_count=row["source_message_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def upsert_summary(self, thread_id: str, text: str, count: int) -> None:
        """Create the thread's summary or overwrite it in place."""
        now = _now().isoformat(timespec="microseconds")
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO context_summaries
                (id, thread_id, summary_text, source_message_count, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(thread_id) DO UPDATE SET
                    summary_text = excluded.summary_text,
                    source_message_count = excluded.source_message_count,
                    updated_at = excluded.updated_at
                """,
                (_new_id(), thread_id, text, count, now, now),
            )

    # ==================== API Keys ====================

    def get_credential(self, owner_user_id: str, provider_name: str) -> str | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT secret_text FROM api_keys WHERE owner_user_id = ? AND provider_name = ?",
                (owner_user_id, provider_name),
            ).fetchone()
        return row["secret_text"] if row else None

    def save_credential(self, owner_user_id: str, provider_name: str, secret_text: str) -> None:
        now = _now().isoformat(timespec="microseconds")
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO api_keys (owner_user_id, provider_name, secret_text, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(owner_user_id, provider_name) DO UPDATE SET
                    secret_text = excluded.secret_text,
                    updated_at = excluded.updated_at
                """,
                (owner_user_id, provider_name, secret_text, now, now),
            )

    def list_credentials(self, owner_user_id: str) -> list[Credential]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM api_keys WHERE owner_user_id = ? ORDER BY provider_name",
                (owner_user_id,),
            )
            return [
                Credential(
                    owner_user_id=row["owner_user_id"],
                    provider_name=row["provider_name"],
                    secret_text=row["secret_text"],
                    updated_at=datetime.fromisoformat(row["updated_at"]),
                )
                for row in cursor.fetchall()
            ]

    def delete_credential(self, owner_user_id: str, provider_name: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM api_keys WHERE owner_user_id = ? AND provider_name = ?",
                (owner_user_id, provider_name),
            )
            return cursor.rowcount > 0
