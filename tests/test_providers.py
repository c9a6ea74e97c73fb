"""Tests for provider adapters (upstream HTTP mocked with httpx.MockTransport)."""

import json

import httpx
import pytest

from conftest import COHERE_HOST, GEMINI_HOST, OPENAI_HOST, cohere_ok, gemini_ok, openai_ok
from relay.models.chat import ChatMessage, ChatOptions
from relay.models.errors import InvalidResponseFormat, ProviderError, RealtimeSessionError, RelayError
from relay.providers.cohere import CohereProvider
from relay.providers.gemini import GeminiProvider
from relay.providers.openai import OpenAIProvider
from relay.providers.realtime import RealtimeSessionClient

CONVERSATION = [
    ChatMessage(role="system", content="roast the user"),
    ChatMessage(role="user", content="hi"),
    ChatMessage(role="assistant", content="oh no, you again"),
    ChatMessage(role="user", content="rude"),
]

OPTIONS = ChatOptions(max_tokens=120, temperature=0.5, top_p=0.7)


class TestGeminiProvider:
    async def test_request_mapping(self, upstream, http_client):
        upstream.on(GEMINI_HOST, gemini_ok())
        provider = GeminiProvider(http_client, "gemini-1.5-flash")

        await provider.call("g-key", CONVERSATION, OPTIONS)

        request = upstream.calls[0]
        assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
        assert request.url.params["key"] == "g-key"

        body = upstream.body()
        assert [c["role"] for c in body["contents"]] == ["user", "user", "model", "user"]
        assert body["contents"][2]["parts"] == [{"text": "oh no, you again"}]
        assert body["generationConfig"] == {
            "maxOutputTokens": 120,
            "temperature": 0.5,
            "topP": 0.7,
        }

    async def test_normalizes_without_usage(self, upstream, http_client):
        upstream.on(GEMINI_HOST, gemini_ok("X"))
        provider = GeminiProvider(http_client, "gemini-1.5-flash")

        result = await provider.call("k", CONVERSATION, OPTIONS)

        assert result.model_dump() == {
            "choices": [{"message": {"role": "assistant", "content": "X"}}],
            "usage": {},
        }

    async def test_copies_usage_metadata(self, upstream, http_client):
        usage = {"promptTokenCount": 4, "candidatesTokenCount": 9}
        upstream.on(GEMINI_HOST, gemini_ok("X", usage=usage))

        result = await GeminiProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert result.usage == usage

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"candidates": []},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"finishReason": "SAFETY"}]},
            {"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]},
        ],
    )
    async def test_invalid_format(self, upstream, http_client, body):
        upstream.on(GEMINI_HOST, httpx.Response(200, json=body))

        with pytest.raises(InvalidResponseFormat) as exc:
            await GeminiProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.provider == "gemini"
        assert json.loads(exc.value.body) == body

    async def test_http_error_carries_status_and_body(self, upstream, http_client):
        upstream.on(GEMINI_HOST, httpx.Response(503, text="overloaded"))

        with pytest.raises(ProviderError) as exc:
            await GeminiProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.upstream_status == 503
        assert exc.value.body == "overloaded"
        assert not isinstance(exc.value, InvalidResponseFormat)

    async def test_connection_error(self, http_client):
        # no route registered -> ConnectError
        with pytest.raises(ProviderError) as exc:
            await GeminiProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.upstream_status is None

    async def test_non_json_body(self, upstream, http_client):
        upstream.on(GEMINI_HOST, httpx.Response(200, text="<html>"))

        with pytest.raises(ProviderError) as exc:
            await GeminiProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.body == "<html>"


class TestCohereProvider:
    async def test_last_message_and_history(self, upstream, http_client):
        upstream.on(COHERE_HOST, cohere_ok())
        provider = CohereProvider(http_client, "command-r")

        await provider.call("c-key", CONVERSATION, OPTIONS)

        request = upstream.calls[0]
        assert request.url.path == "/v1/chat"
        assert request.headers["authorization"] == "Bearer c-key"

        body = upstream.body()
        assert body["model"] == "command-r"
        assert body["message"] == "rude"
        assert body["chat_history"] == [
            {"role": "USER", "message": "roast the user"},
            {"role": "USER", "message": "hi"},
            {"role": "CHATBOT", "message": "oh no, you again"},
        ]
        assert body["max_tokens"] == 120
        assert body["temperature"] == 0.5
        assert body["p"] == 0.7

    async def test_single_message_has_empty_history(self, upstream, http_client):
        upstream.on(COHERE_HOST, cohere_ok())

        await CohereProvider(http_client, "m").call(
            "k", [ChatMessage(role="user", content="only")], OPTIONS
        )
        assert upstream.body()["chat_history"] == []
        assert upstream.body()["message"] == "only"

    async def test_normalizes_and_copies_meta(self, upstream, http_client):
        meta = {"billed_units": {"input_tokens": 5}}
        upstream.on(COHERE_HOST, cohere_ok("Y", meta=meta))

        result = await CohereProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert result.model_dump() == {
            "choices": [{"message": {"role": "assistant", "content": "Y"}}],
            "usage": meta,
        }

    async def test_missing_text(self, upstream, http_client):
        raw = '{"generation_id": "abc", "meta": null}'
        upstream.on(COHERE_HOST, httpx.Response(200, text=raw))

        with pytest.raises(InvalidResponseFormat) as exc:
            await CohereProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.body == raw

    async def test_http_error(self, upstream, http_client):
        upstream.on(COHERE_HOST, httpx.Response(401, json={"message": "invalid api token"}))

        with pytest.raises(ProviderError) as exc:
            await CohereProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.upstream_status == 401
        assert "invalid api token" in exc.value.body


class TestOpenAIProvider:
    async def test_sends_messages_verbatim_with_tuning(self, upstream, http_client):
        upstream.on(OPENAI_HOST, openai_ok())
        options = ChatOptions(
            model="gpt-4o",
            max_tokens=50,
            temperature=0.1,
            top_p=0.2,
            frequency_penalty=0.4,
            presence_penalty=0.6,
        )

        await OpenAIProvider(http_client, "gpt-3.5-turbo").call("o-key", CONVERSATION, options)

        request = upstream.calls[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer o-key"
        assert upstream.body() == {
            "model": "gpt-4o",
            "messages": [m.model_dump() for m in CONVERSATION],
            "max_tokens": 50,
            "temperature": 0.1,
            "top_p": 0.2,
            "frequency_penalty": 0.4,
            "presence_penalty": 0.6,
        }

    async def test_default_model(self, upstream, http_client):
        upstream.on(OPENAI_HOST, openai_ok())
        await OpenAIProvider(http_client, "gpt-3.5-turbo").call("k", CONVERSATION, OPTIONS)
        assert upstream.body()["model"] == "gpt-3.5-turbo"

    async def test_normalizes(self, upstream, http_client):
        upstream.on(OPENAI_HOST, openai_ok("Z", usage={"total_tokens": 7}))

        result = await OpenAIProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert result.model_dump() == {
            "choices": [{"message": {"role": "assistant", "content": "Z"}}],
            "usage": {"total_tokens": 7},
        }

    async def test_error_keeps_status(self, upstream, http_client):
        upstream.on(OPENAI_HOST, httpx.Response(429, text='{"error":"quota"}'))

        with pytest.raises(ProviderError) as exc:
            await OpenAIProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.upstream_status == 429
        assert exc.value.body == '{"error":"quota"}'

    async def test_invalid_format_keeps_raw_body(self, upstream, http_client):
        raw = '{"choices": [{"message": {"content": null}}], "id": "chatcmpl-1"}'
        upstream.on(OPENAI_HOST, httpx.Response(200, text=raw))

        with pytest.raises(InvalidResponseFormat) as exc:
            await OpenAIProvider(http_client, "m").call("k", CONVERSATION, OPTIONS)
        assert exc.value.upstream_status == 200
        assert exc.value.body == raw

    def test_is_passthrough(self, http_client):
        assert OpenAIProvider(http_client, "m").passthrough_errors is True
        assert GeminiProvider(http_client, "m").passthrough_errors is False
        assert CohereProvider(http_client, "m").passthrough_errors is False


class TestRealtimeSessionClient:
    async def test_returns_session_verbatim(self, upstream, http_client):
        session = {"id": "sess_1", "client_secret": {"value": "ek_123", "expires_at": 1}}
        upstream.on(OPENAI_HOST, httpx.Response(200, json=session))
        client = RealtimeSessionClient(http_client, model="rt-model", voice="verse", timeout=5)

        assert await client.create_session("o-key") == session

        request = upstream.calls[0]
        assert request.url.path == "/v1/realtime/sessions"
        assert request.headers["authorization"] == "Bearer o-key"
        assert upstream.body() == {
            "model": "rt-model",
            "voice": "verse",
            "modalities": ["audio", "text"],
        }

    async def test_upstream_failure(self, upstream, http_client):
        upstream.on(OPENAI_HOST, httpx.Response(403, text="forbidden"))
        client = RealtimeSessionClient(http_client, model="m", voice="alloy", timeout=5)

        with pytest.raises(RealtimeSessionError) as exc:
            await client.create_session("k")
        assert exc.value.status_code == 500
        assert exc.value.to_dict() == {"error": "OpenAI error", "status": 403, "details": "forbidden"}

    async def test_transport_failure(self, http_client):
        client = RealtimeSessionClient(http_client, model="m", voice="alloy", timeout=5)

        with pytest.raises(RelayError) as exc:
            await client.create_session("k")
        assert exc.value.to_dict() == {"error": "Server error"}
