"""Single-turn conversation flow: persist, summarize, call the provider, persist."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from aihub.models import ChatThread, Message
from aihub.providers import ProviderAdapter, ProviderReply
from aihub.settings import CONTEXT_WINDOW_MESSAGES
from aihub.summarization import ContextSummarizer

_LOG = logging.getLogger(__name__)

MISSING_KEY_REPLY = (
    "I'm {provider}, but I need an API key to respond. "
    "Please add your {provider} API key in Settings to start chatting!"
)


class ChatError(LookupError):
    """Base class for caller errors raised before anything is written."""


class ThreadNotFound(ChatError):
    def __init__(self, thread_id: str) -> None:
        self.thread_id = thread_id
        super().__init__(f"Chat thread not found: {thread_id}")


class UnknownProvider(ChatError):
    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"Unknown provider: {provider_name}")


class ConversationMismatch(ChatError):
    """A sub-conversation was addressed with a provider it doesn't belong to."""

    def __init__(self, conversation_id: str, provider_name: str) -> None:
        self.conversation_id = conversation_id
        self.provider_name = provider_name
        super().__init__(f"Conversation {conversation_id} does not belong to {provider_name}")


class ConversationStore(Protocol):
    """Thread, message and credential persistence used by a turn."""

    def get_thread(self, thread_id: str) -> ChatThread | None:
        ...

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
        ...

    def list_recent_messages(self, thread_id: str, limit: int) -> list[Message]:
        ...

    def touch_thread_timestamp(self, thread_id: str) -> None:
        ...

    def get_credential(self, owner_user_id: str, provider_name: str) -> str | None:
        ...


@dataclass(frozen=True)
class TurnResult:
    user_message: Message
    assistant_message: Message


def missing_key_reply(provider_name: str) -> str:
    return MISSING_KEY_REPLY.format(provider=provider_name)


class ConversationOrchestrator:
    """Runs one user -> provider -> assistant round trip for a thread.

    Steps run strictly in order, each committing before the next reads:
    user message, context summary, credential, provider call, assistant
    message, thread timestamp. Provider failures are persisted as the
    assistant reply; only caller errors raise, and they raise before any
    write.
    """

    def __init__(
        self,
        store: ConversationStore,
        registry: Mapping[str, ProviderAdapter],
        summarizer: ContextSummarizer,
        *,
        context_window: int = CONTEXT_WINDOW_MESSAGES,
    ) -> None:
        self.store = store
        self.registry = registry
        self.summarizer = summarizer
        self.context_window = context_window

    def resolve_adapter(self, provider_name: str) -> ProviderAdapter:
        adapter = self.registry.get(provider_name)
        if adapter is None:
            _LOG.warning("Rejected turn for unregistered provider %r", provider_name)
            raise UnknownProvider(provider_name)
        return adapter

    def load_thread(self, thread_id: str, owner_user_id: str) -> ChatThread:
        """Return the caller's thread or raise ``ThreadNotFound``."""
        thread = self.store.get_thread(thread_id)
        # sub-conversations are addressed through their parent thread
        if thread is None or thread.owner_user_id != owner_user_id or thread.parent_id is not None:
            raise ThreadNotFound(thread_id)
        return thread

    async def handle_turn(
        self,
        owner_user_id: str,
        thread_id: str,
        provider_name: str,
        user_text: str,
        *,
        conversation_id: str | None = None,
    ) -> TurnResult:
        """
        Send ``user_text`` to ``provider_name`` within a thread.

        Args:
            owner_user_id: The caller; must own the thread
            thread_id: Top-level thread that holds messages and the summary
            provider_name: Registered adapter name
            user_text: Message authored by the user
            conversation_id: Provider sub-conversation of the thread, if any

        Returns:
            The persisted user and assistant messages

        Raises:
            ThreadNotFound: thread (or sub-conversation) missing or not owned
            UnknownProvider: ``provider_name`` isn't registered
            ConversationMismatch: the sub-conversation belongs to another provider
        """
        thread = self.load_thread(thread_id, owner_user_id)
        if conversation_id is not None:
            conversation = self.store.get_thread(conversation_id)
            if conversation is None or conversation.parent_id != thread.id:
                raise ThreadNotFound(conversation_id)
            if conversation.provider_name != provider_name:
                raise ConversationMismatch(conversation_id, provider_name)
        adapter = self.resolve_adapter(provider_name)

        user_message = self.store.append_message(
            thread_id, "user", provider_name, user_text, conversation_id=conversation_id
        )

        recent = self.store.list_recent_messages(thread_id, self.context_window)
        self.summarizer.update_summary(thread_id, recent)
        summary = self.summarizer.get_summary(thread_id)

        credential = self.store.get_credential(thread.owner_user_id, provider_name)
        if credential is None:
            _LOG.info("No %s key on file for user %s; sending placeholder reply", provider_name, owner_user_id)
            reply = ProviderReply.success(missing_key_reply(provider_name))
        else:
            reply = await adapter.send(user_text, credential, summary or None)

        assistant_message = self.store.append_message(
            thread_id,
            "assistant",
            provider_name,
            reply.render(),
            conversation_id=conversation_id,
            is_error=not reply.ok,
        )

        self.store.touch_thread_timestamp(thread_id)
        if conversation_id is not None:
            self.store.touch_thread_timestamp(conversation_id)

        _LOG.info(
            "Turn complete: thread=%s provider=%s ok=%s",
            thread_id,
            provider_name,
            reply.ok,
        )
        return TurnResult(user_message=user_message, assistant_message=assistant_message)
