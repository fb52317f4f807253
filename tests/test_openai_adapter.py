"""
Coach API - OpenAI Adapter Tests

Wire format and error mapping of the OpenAI adapter, run against an
in-process httpx transport.
"""

import json

import httpx
import pytest

from coach_api.adapters import AdapterConfig, OpenAIAdapter, StubAdapter, create_adapter_from_env
from coach_api.core.errors import (
    ConnectionTimeoutError,
    InfraError,
    ProviderRateLimitedError,
    UpstreamError,
)
from coach_api.core.models import ChatCompletionRequest, FinishReason, Message


def _request(**kwargs) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model="gpt-3.5-turbo",
        messages=[Message.system("You are a coach."), Message.user("Help me")],
        **kwargs,
    )


def _adapter(handler) -> OpenAIAdapter:
    return OpenAIAdapter(
        AdapterConfig(api_key="sk-test", base_url="https://llm.test/v1"),
        transport=httpx.MockTransport(handler),
    )


class TestChatCompletion:

    @pytest.mark.asyncio
    async def test_request_payload(self, mock_openai_response):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=mock_openai_response)

        adapter = _adapter(handler)
        await adapter.chat_completion(_request(
            temperature=0.6, max_tokens=2000, presence_penalty=0.1, frequency_penalty=0.1, json_mode=True,
        ))
        await adapter.close()

        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "You are a coach."},
            {"role": "user", "content": "Help me"},
        ]
        assert seen["body"]["temperature"] == 0.6
        assert seen["body"]["max_tokens"] == 2000
        assert seen["body"]["presence_penalty"] == 0.1
        assert seen["body"]["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_optional_fields_are_omitted(self, mock_openai_response):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=mock_openai_response)

        await _adapter(handler).chat_completion(_request())

        assert set(seen["body"]) == {"model", "messages"}

    @pytest.mark.asyncio
    async def test_response_parsing(self, mock_openai_response):
        adapter = _adapter(lambda request: httpx.Response(200, json=mock_openai_response))

        response = await adapter.chat_completion(_request())

        assert response.content == "Start by naming the shared goal, then propose two options."
        assert response.usage.total_tokens == 52
        assert response.provider == "openai"
        assert response.finish_reason == FinishReason.STOP
        assert response.id == "chatcmpl-test123"

    @pytest.mark.asyncio
    async def test_no_choices(self):
        adapter = _adapter(lambda request: httpx.Response(200, json={"choices": []}))

        with pytest.raises(InfraError):
            await adapter.chat_completion(_request())


class TestErrorMapping:

    @pytest.mark.asyncio
    async def test_rate_limited(self, mock_error_429):
        adapter = _adapter(lambda request: httpx.Response(
            429, json=mock_error_429, headers={"retry-after": "12"}
        ))

        with pytest.raises(ProviderRateLimitedError) as exc_info:
            await adapter.chat_completion(_request(), request_id="req_1")

        assert exc_info.value.error.retry_after == 12
        assert exc_info.value.error.request_id == "req_1"

    @pytest.mark.asyncio
    async def test_server_error(self):
        adapter = _adapter(lambda request: httpx.Response(503, json={"error": {"message": "overloaded"}}))

        with pytest.raises(UpstreamError) as exc_info:
            await adapter.chat_completion(_request())

        assert exc_info.value.error.code == "upstream_503"

    @pytest.mark.asyncio
    async def test_connect_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ConnectionTimeoutError):
            await _adapter(handler).chat_completion(_request())


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_healthy(self):
        health = await _adapter(lambda request: httpx.Response(200, json={"data": []})).health_check()

        assert health.is_healthy is True
        assert health.provider == "openai"

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        health = await _adapter(handler).health_check()

        assert health.is_healthy is False
        assert "refused" in health.last_error


class TestFactory:

    def test_stub_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert isinstance(create_adapter_from_env(use_stub=True), StubAdapter)

    def test_no_key_means_no_adapter(self):
        assert create_adapter_from_env() is None

    def test_openai_with_custom_base_url(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENAI_BASE_URL", "https://proxy.internal/v1")

        adapter = create_adapter_from_env()

        assert isinstance(adapter, OpenAIAdapter)
        assert adapter.base_url == "https://proxy.internal/v1"
