"""Fan one user message out to several provider conversations of a thread."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from aihub.models import ChatThread
from aihub.orchestrator import ConversationOrchestrator, TurnResult, UnknownProvider
from aihub.settings import BROADCAST_MAX_CONCURRENCY

_LOG = logging.getLogger(__name__)


class ConversationDirectory(Protocol):
    def get_or_create_conversation(self, thread: ChatThread, provider_name: str) -> ChatThread:
        ...


@dataclass(frozen=True)
class BroadcastOutcome:
    """Result for one broadcast target: the turn on success, else an error."""

    provider_name: str
    success: bool
    data: TurnResult | None = None
    error: str | None = None


class BroadcastCoordinator:
    """Runs one orchestrated turn per provider, isolated from each other.

    Targets run concurrently (bounded by ``max_concurrency``) but results come
    back in the order the providers were given. A failing target never aborts
    or rolls back another; whatever it already persisted stays.
    """

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        conversations: ConversationDirectory,
        *,
        max_concurrency: int = BROADCAST_MAX_CONCURRENCY,
    ) -> None:
        self.orchestrator = orchestrator
        self.conversations = conversations
        self.max_concurrency = max(1, max_concurrency)

    async def broadcast(
        self,
        owner_user_id: str,
        thread_id: str,
        user_text: str,
        provider_names: Sequence[str],
    ) -> list[BroadcastOutcome]:
        thread = self.orchestrator.load_thread(thread_id, owner_user_id)
        targets = list(dict.fromkeys(provider_names))
        _LOG.info("Broadcasting to %d providers in thread %s: %s", len(targets), thread_id, targets)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run(provider_name: str) -> BroadcastOutcome:
            async with semaphore:
                return await self._run_target(owner_user_id, thread, provider_name, user_text)

        outcomes = await asyncio.gather(*(_run(name) for name in targets))

        failed = sum(1 for outcome in outcomes if not outcome.success)
        _LOG.info("Broadcast in thread %s finished: %d ok, %d failed", thread_id, len(outcomes) - failed, failed)
        return list(outcomes)

    async def _run_target(
        self,
        owner_user_id: str,
        thread: ChatThread,
        provider_name: str,
        user_text: str,
    ) -> BroadcastOutcome:
        try:
            self.orchestrator.resolve_adapter(provider_name)
            conversation = self.conversations.get_or_create_conversation(thread, provider_name)
            result = await self.orchestrator.handle_turn(
                owner_user_id,
                thread.id,
                provider_name,
                user_text,
                conversation_id=conversation.id,
            )
        except UnknownProvider as exc:
            return BroadcastOutcome(provider_name, success=False, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            _LOG.exception("Broadcast target %s failed in thread %s", provider_name, thread.id)
            return BroadcastOutcome(provider_name, success=False, error=str(exc) or exc.__class__.__name__)
        return BroadcastOutcome(provider_name, success=True, data=result)
