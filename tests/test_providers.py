"""Tests for provider adapters and the registry."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest
from conftest import FakeAdapter

from aihub import settings
from aihub.providers import (
    ChatGPTAdapter,
    ClaudeAdapter,
    DeepSeekAdapter,
    ErrorKind,
    GeminiAdapter,
    ProviderReply,
    build_registry,
    compose_prompt,
)
from aihub.providers.anthropic import get_anthropic_client
from aihub.providers.openai_chatgpt import classify_openai_error, get_openai_client
from aihub.providers.openrouter import get_openrouter_client

_REQUEST = httpx.Request("POST", "https://example.invalid/v1/chat")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=_REQUEST)


def _chat_completion(content: str | None) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    choice.finish_reason = "stop"
    response = MagicMock()
    response.choices = [choice]
    return response


@pytest.fixture
def mock_openai_client():
    """Create a mock AsyncOpenAI client."""
    mock = MagicMock()
    mock.chat.completions.create = AsyncMock()
    mock.models.list = AsyncMock()
    return mock


@pytest.fixture
def mock_anthropic_client():
    """Create a mock AsyncAnthropic client."""
    mock = MagicMock()
    mock.messages.create = AsyncMock()
    return mock


class TestComposePrompt:
    def test_without_context(self):
        assert compose_prompt("hi") == "hi"
        assert compose_prompt("hi", "") == "hi"

    def test_with_context(self):
        assert compose_prompt("hi", "Recent conversation context: ...") == (
            "Recent conversation context: ...\n\nUser: hi"
        )


class TestProviderReply:
    def test_success_renders_text(self):
        reply = ProviderReply.success("Hello")
        assert reply.ok
        assert reply.render() == "Hello"

    def test_failure_renders_error_prefix(self):
        reply = ProviderReply.failure(ErrorKind.API_STATUS, "500 - Internal error")
        assert not reply.ok
        assert reply.render() == "Error: 500 - Internal error"


class TestBaseAdapter:
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_captured(self):
        adapter = FakeAdapter("Fake", ValueError("bad things"))
        reply = await adapter.send("hi", "key")
        assert reply.error is ErrorKind.UNEXPECTED
        assert reply.detail == "bad things"

    @pytest.mark.asyncio
    async def test_timeout(self):
        class Slow(FakeAdapter):
            async def _complete(self, prompt, credential):
                await asyncio.sleep(1)
                return "late"

        reply = await Slow("Slow", timeout=0.01).send("hi", "key")
        assert reply.error is ErrorKind.TIMEOUT
        assert reply.render() == "Error: Request timed out after 0.01s"

    @pytest.mark.asyncio
    async def test_context_is_passed_through(self):
        adapter = FakeAdapter("Fake")
        await adapter.send("hi", "key", "context")
        assert adapter.prompts == [("context\n\nUser: hi", "key")]

    @pytest.mark.asyncio
    async def test_validate_swallows_errors(self):
        class Broken(FakeAdapter):
            async def _check_credential(self, credential):
                raise RuntimeError("network down")

        assert await Broken("Broken").validate("key") is False
        assert await FakeAdapter("Fine").validate("key") is True
        assert await FakeAdapter("Rejected", valid=False).validate("key") is False


class TestClassifyOpenAIError:
    def test_rate_limit(self):
        exc = openai.RateLimitError("Slow down", response=_response(429), body=None)
        assert classify_openai_error(exc) == (ErrorKind.RATE_LIMIT, "429 - Slow down")

    def test_status(self):
        exc = openai.InternalServerError("Server exploded", response=_response(500), body=None)
        assert classify_openai_error(exc) == (ErrorKind.API_STATUS, "500 - Server exploded")

    def test_connection(self):
        exc = openai.APIConnectionError(message="Connection refused", request=_REQUEST)
        assert classify_openai_error(exc) == (ErrorKind.CONNECTION, "Connection refused")

    def test_timeout_before_connection(self):
        exc = openai.APITimeoutError(request=_REQUEST)
        assert classify_openai_error(exc)[0] is ErrorKind.TIMEOUT


class TestChatGPTAdapter:
    def test_identity_and_defaults(self):
        adapter = ChatGPTAdapter()
        assert adapter.identify() == "ChatGPT"
        assert adapter.model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_send(self, mock_openai_client):
        adapter = ChatGPTAdapter(max_tokens=1000, temperature=0.7)
        mock_openai_client.chat.completions.create.return_value = _chat_completion("  Hi there!  ")

        with patch.object(adapter, "_get_client", return_value=mock_openai_client):
            reply = await adapter.send("Hello", "sk-test", "summary")

        assert reply == ProviderReply.success("Hi there!")
        call_kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == adapter.model
        assert call_kwargs["messages"] == [{"role": "user", "content": "summary\n\nUser: Hello"}]
        assert call_kwargs["max_tokens"] == 1000
        assert call_kwargs["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_empty_content(self, mock_openai_client):
        adapter = ChatGPTAdapter()
        mock_openai_client.chat.completions.create.return_value = _chat_completion(None)

        with patch.object(adapter, "_get_client", return_value=mock_openai_client):
            reply = await adapter.send("Hello", "sk-test")

        assert reply.error is ErrorKind.EMPTY_RESPONSE
        assert reply.render() == "Error: No response received"

    @pytest.mark.asyncio
    async def test_rate_limit_becomes_reply(self, mock_openai_client):
        adapter = ChatGPTAdapter()
        mock_openai_client.chat.completions.create.side_effect = openai.RateLimitError(
            "Rate limit reached", response=_response(429), body=None
        )

        with patch.object(adapter, "_get_client", return_value=mock_openai_client):
            reply = await adapter.send("Hello", "sk-test")

        assert reply.error is ErrorKind.RATE_LIMIT
        assert reply.render() == "Error: 429 - Rate limit reached"

    @pytest.mark.asyncio
    async def test_validate(self, mock_openai_client):
        adapter = ChatGPTAdapter()
        with patch.object(adapter, "_get_client", return_value=mock_openai_client):
            assert await adapter.validate("sk-good") is True

        mock_openai_client.models.list.side_effect = openai.AuthenticationError(
            "Invalid key", response=_response(401), body=None
        )
        with patch.object(adapter, "_get_client", return_value=mock_openai_client):
            assert await adapter.validate("sk-bad") is False


class TestClaudeAdapter:
    @pytest.mark.asyncio
    async def test_send_joins_text_blocks(self, mock_anthropic_client):
        adapter = ClaudeAdapter()
        first, second = MagicMock(), MagicMock()
        first.text = "Hello, "
        second.text = "world!"
        mock_anthropic_client.messages.create.return_value = MagicMock(content=[first, second])

        with patch.object(adapter, "_get_client", return_value=mock_anthropic_client):
            reply = await adapter.send("Hi", "sk-ant")

        assert reply.text == "Hello, world!"
        call_kwargs = mock_anthropic_client.messages.create.call_args.kwargs
        assert call_kwargs["model"] == adapter.model
        assert call_kwargs["messages"] == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_status_error(self, mock_anthropic_client):
        adapter = ClaudeAdapter()
        mock_anthropic_client.messages.create.side_effect = anthropic.InternalServerError(
            "Overloaded", response=_response(529), body=None
        )

        with patch.object(adapter, "_get_client", return_value=mock_anthropic_client):
            reply = await adapter.send("Hi", "sk-ant")

        assert reply.error is ErrorKind.API_STATUS
        assert reply.detail == "529 - Overloaded"

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_anthropic_client):
        adapter = ClaudeAdapter()
        mock_anthropic_client.messages.create.side_effect = anthropic.APIConnectionError(
            message="Connection reset", request=_REQUEST
        )

        with patch.object(adapter, "_get_client", return_value=mock_anthropic_client):
            reply = await adapter.send("Hi", "sk-ant")

        assert reply.error is ErrorKind.CONNECTION
        assert reply.render() == "Error: Connection reset"

    @pytest.mark.asyncio
    async def test_validate_uses_single_token(self, mock_anthropic_client):
        adapter = ClaudeAdapter()
        with patch.object(adapter, "_get_client", return_value=mock_anthropic_client):
            assert await adapter.validate("sk-ant") is True
        assert mock_anthropic_client.messages.create.call_args.kwargs["max_tokens"] == 1


class TestOpenRouterAdapters:
    def test_names(self):
        assert GeminiAdapter().identify() == "Gemini"
        assert DeepSeekAdapter().identify() == "DeepSeek"

    @pytest.mark.asyncio
    async def test_send(self, mock_openai_client):
        adapter = DeepSeekAdapter()
        mock_openai_client.chat.completions.create.return_value = _chat_completion("Bonjour")

        with patch.object(adapter, "_get_client", return_value=mock_openai_client):
            reply = await adapter.send("Salut", "or-key")

        assert reply.text == "Bonjour"
        assert mock_openai_client.chat.completions.create.call_args.kwargs["model"] == adapter.model

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("status", "expected"), [(200, True), (401, False)])
    async def test_validate_checks_key_endpoint(self, status, expected):
        adapter = GeminiAdapter()
        mock_http = MagicMock()
        mock_http.get = AsyncMock(return_value=httpx.Response(status, request=_REQUEST))

        with patch("aihub.providers.openrouter.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = mock_http
            assert await adapter.validate("or-key") is expected

        url = mock_http.get.call_args.args[0]
        assert url.endswith("/key")
        assert mock_http.get.call_args.kwargs["headers"] == {"Authorization": "Bearer or-key"}


class TestClientCache:
    @pytest.mark.parametrize(
        "factory", [get_openai_client, get_openrouter_client, get_anthropic_client]
    )
    def test_clients_keyed_by_key_and_timeout(self, factory):
        first = factory("sk-cache-test", 30.0)

        assert factory("sk-cache-test", 30.0) is first
        assert factory("sk-cache-test", 5.0) is not first
        assert factory("sk-other-key", 30.0) is not first

    @pytest.mark.parametrize(
        "factory", [get_openai_client, get_openrouter_client, get_anthropic_client]
    )
    def test_cache_is_bounded(self, factory):
        assert factory.cache_info().maxsize == settings.PROVIDER_CLIENT_CACHE_SIZE

    def test_adapter_timeout_reaches_client(self):
        fast = ChatGPTAdapter(timeout=5.0)
        slow = ChatGPTAdapter(timeout=90.0)

        assert fast._get_client("sk-shared") is not slow._get_client("sk-shared")
        assert slow._get_client("sk-shared").timeout == 90.0


class TestBuildRegistry:
    def test_default_registry(self):
        assert list(build_registry()) == ["ChatGPT", "Gemini", "Claude", "DeepSeek"]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate provider name"):
            build_registry([FakeAdapter("Claude"), FakeAdapter("Claude")])

    def test_blank_name_rejected(self):
        with pytest.raises(ValueError):
            build_registry([FakeAdapter("")])
