"""AIHub HTTP API - chat sessions, single turns, broadcast, summaries and API keys.

Authentication is handled upstream; the caller's id arrives in the
``X-User-Id`` header.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field

from aihub.broadcast import BroadcastCoordinator, BroadcastOutcome
from aihub.chat_db import ChatStore
from aihub.models import ChatThread, Message
from aihub.orchestrator import (
    ConversationMismatch,
    ConversationOrchestrator,
    ThreadNotFound,
    TurnResult,
    UnknownProvider,
)
from aihub.providers import ProviderAdapter, build_registry
from aihub.summarization import ContextSummarizer

_LOG = logging.getLogger(__name__)


# ==================== Schemas ====================


class CreateSessionRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    provider_name: str | None = None


class SessionInfo(BaseModel):
    id: str
    title: str
    provider_name: str | None = None
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class MessageInfo(BaseModel):
    id: str
    thread_id: str
    conversation_id: str | None = None
    provider_name: str
    content: str
    role: str
    is_error: bool = False
    created_at: datetime


class SendMessageRequest(BaseModel):
    provider_name: str
    message: str = Field(min_length=1)
    conversation_id: str | None = None


class TurnResponse(BaseModel):
    user_message: MessageInfo
    assistant_message: MessageInfo


class BroadcastRequest(BaseModel):
    message: str = Field(min_length=1)
    provider_names: list[str] = Field(min_length=1)


class BroadcastResult(BaseModel):
    provider_name: str
    success: bool
    data: TurnResponse | None = None
    error: str | None = None


class SummaryResponse(BaseModel):
    summary: str


class SaveApiKeyRequest(BaseModel):
    provider_name: str
    api_key: str = Field(min_length=1)


class ApiKeyInfo(BaseModel):
    provider_name: str
    has_key: bool
    updated_at: datetime


class ValidateApiKeyRequest(BaseModel):
    provider_name: str


class ValidateApiKeyResponse(BaseModel):
    is_valid: bool


class StatusResponse(BaseModel):
    success: bool
    message: str


# ==================== Converters ====================


def _message_info(message: Message) -> MessageInfo:
    return MessageInfo(
        id=message.id,
        thread_id=message.thread_id,
        conversation_id=message.conversation_id,
        provider_name=message.provider_name,
        content=message.content,
        role=message.role,
        is_error=message.is_error,
        created_at=message.created_at,
    )


def _turn_response(result: TurnResult) -> TurnResponse:
    return TurnResponse(
        user_message=_message_info(result.user_message),
        assistant_message=_message_info(result.assistant_message),
    )


def _broadcast_result(outcome: BroadcastOutcome) -> BroadcastResult:
    return BroadcastResult(
        provider_name=outcome.provider_name,
        success=outcome.success,
        data=_turn_response(outcome.data) if outcome.data else None,
        error=outcome.error,
    )


def _session_info(thread: ChatThread, message_count: int = 0) -> SessionInfo:
    return SessionInfo(
        id=thread.id,
        title=thread.title,
        provider_name=thread.provider_name,
        created_at=thread.created_at,
        updated_at=thread.updated_at,
        message_count=message_count,
    )


# ==================== Dependencies ====================


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Raise 401 when the caller's identity is missing."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def get_store(request: Request) -> ChatStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


def get_coordinator(request: Request) -> BroadcastCoordinator:
    return request.app.state.coordinator


def get_owned_thread(
    session_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ChatThread:
    try:
        return orchestrator.load_thread(session_id, user_id)
    except ThreadNotFound:
        raise HTTPException(status_code=404, detail="Chat session not found")


# ==================== App ====================


def create_app(
    store: ChatStore | None = None,
    registry: Mapping[str, ProviderAdapter] | None = None,
) -> FastAPI:
    """Wire the store, provider registry, orchestrator and coordinator together."""
    store = store if store is not None else ChatStore()
    registry = dict(registry) if registry is not None else build_registry()
    summarizer = ContextSummarizer(store)
    orchestrator = ConversationOrchestrator(store, registry, summarizer)

    app = FastAPI(title="AIHub API")
    app.state.store = store
    app.state.registry = registry
    app.state.summarizer = summarizer
    app.state.orchestrator = orchestrator
    app.state.coordinator = BroadcastCoordinator(orchestrator, store)

    @app.get("/api/providers")
    async def list_providers() -> list[str]:
        return list(registry)

    # ---------------------------------------------------------------- sessions

    @app.get("/api/chat/sessions", response_model=list[SessionInfo])
    async def list_sessions(
        user_id: str = Depends(get_user_id),
        store: ChatStore = Depends(get_store),
    ):
        return [_session_info(t, store.count_messages(t.id)) for t in store.list_threads(user_id)]

    @app.post("/api/chat/sessions", response_model=SessionInfo)
    async def create_session(
        request: CreateSessionRequest,
        user_id: str = Depends(get_user_id),
        store: ChatStore = Depends(get_store),
    ):
        if request.provider_name is not None and request.provider_name not in registry:
            raise HTTPException(status_code=400, detail="Invalid service name")
        thread = store.create_thread(user_id, request.title, request.provider_name)
        _LOG.info("Created chat session %s for user %s", thread.id, user_id)
        return _session_info(thread)

    @app.delete("/api/chat/sessions/{session_id}", response_model=StatusResponse)
    async def delete_session(
        thread: ChatThread = Depends(get_owned_thread),
        store: ChatStore = Depends(get_store),
    ):
        store.delete_thread(thread.id)
        return StatusResponse(success=True, message="Chat session deleted successfully")

    @app.get("/api/chat/sessions/{session_id}/conversations", response_model=list[SessionInfo])
    async def list_conversations(
        thread: ChatThread = Depends(get_owned_thread),
        store: ChatStore = Depends(get_store),
    ):
        return [_session_info(c) for c in store.list_conversations(thread.id)]

    # ---------------------------------------------------------------- messages

    @app.get("/api/chat/sessions/{session_id}/messages", response_model=list[MessageInfo])
    async def list_messages(
        conversation_id: str | None = None,
        thread: ChatThread = Depends(get_owned_thread),
        store: ChatStore = Depends(get_store),
    ):
        return [_message_info(m) for m in store.list_messages(thread.id, conversation_id)]

    @app.post("/api/chat/sessions/{session_id}/messages", response_model=TurnResponse)
    async def send_message(
        session_id: str,
        request: SendMessageRequest,
        user_id: str = Depends(get_user_id),
        orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    ):
        try:
            result = await orchestrator.handle_turn(
                user_id,
                session_id,
                request.provider_name,
                request.message,
                conversation_id=request.conversation_id,
            )
        except ThreadNotFound:
            raise HTTPException(status_code=404, detail="Chat session not found")
        except UnknownProvider:
            raise HTTPException(status_code=400, detail="Invalid service name")
        except ConversationMismatch:
            raise HTTPException(status_code=400, detail="Conversation belongs to another service")
        return _turn_response(result)

    @app.post("/api/chat/sessions/{session_id}/broadcast", response_model=list[BroadcastResult])
    async def broadcast_message(
        session_id: str,
        request: BroadcastRequest,
        user_id: str = Depends(get_user_id),
        coordinator: BroadcastCoordinator = Depends(get_coordinator),
    ):
        try:
            outcomes = await coordinator.broadcast(
                user_id, session_id, request.message, request.provider_names
            )
        except ThreadNotFound:
            raise HTTPException(status_code=404, detail="Chat session not found")
        return [_broadcast_result(o) for o in outcomes]

    @app.get("/api/chat/sessions/{session_id}/summary", response_model=SummaryResponse)
    async def get_summary(thread: ChatThread = Depends(get_owned_thread)):
        return SummaryResponse(summary=summarizer.get_summary(thread.id))

    # ---------------------------------------------------------------- api keys

    @app.get("/api/apikeys", response_model=list[ApiKeyInfo])
    async def list_api_keys(
        user_id: str = Depends(get_user_id),
        store: ChatStore = Depends(get_store),
    ):
        return [
            ApiKeyInfo(
                provider_name=c.provider_name,
                has_key=bool(c.secret_text),
                updated_at=c.updated_at,
            )
            for c in store.list_credentials(user_id)
        ]

    @app.post("/api/apikeys", response_model=StatusResponse)
    async def save_api_key(
        request: SaveApiKeyRequest,
        user_id: str = Depends(get_user_id),
        store: ChatStore = Depends(get_store),
    ):
        if not request.api_key.strip():
            raise HTTPException(status_code=400, detail="API key cannot be empty")
        if request.provider_name not in registry:
            raise HTTPException(status_code=400, detail="Invalid service name")
        store.save_credential(user_id, request.provider_name, request.api_key.strip())
        return StatusResponse(success=True, message="API key saved successfully")

    @app.delete("/api/apikeys/{provider_name}", response_model=StatusResponse)
    async def delete_api_key(
        provider_name: str,
        user_id: str = Depends(get_user_id),
        store: ChatStore = Depends(get_store),
    ):
        if not store.delete_credential(user_id, provider_name):
            raise HTTPException(status_code=404, detail="API key not found")
        return StatusResponse(success=True, message="API key deleted successfully")

    @app.post("/api/apikeys/validate", response_model=ValidateApiKeyResponse)
    async def validate_api_key(
        request: ValidateApiKeyRequest,
        user_id: str = Depends(get_user_id),
        store: ChatStore = Depends(get_store),
    ):
        adapter = registry.get(request.provider_name)
        if adapter is None:
            raise HTTPException(status_code=400, detail="Invalid service name")
        credential = store.get_credential(user_id, request.provider_name)
        if credential is None:
            raise HTTPException(status_code=404, detail="API key not found")
        return ValidateApiKeyResponse(is_valid=await adapter.validate(credential))

    return app
