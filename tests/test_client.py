"""Tests for the API client."""

import asyncio
import json
from types import MappingProxyType
from unittest.mock import MagicMock

import httpx
import pytest

from page_summarizer.constants import LEGACY_API_URL
from page_summarizer.errors import (
    ApiCallFailed,
    InvalidResponseFormat,
    NetworkError,
    NoApiKey,
    RequestCancelled,
    RequestTimeout,
)
from page_summarizer.providers.registry import ModelInfo, ProviderDescriptor
from page_summarizer.settings import MemorySettingsStore, Settings
from page_summarizer.summarize.chunking import plan_chunks
from page_summarizer.summarize.client import ApiClient

OPENAI_SETTINGS = {"provider": "openai", "model": "gpt-5-mini", "api_key": "sk-test"}


def chat_response(text: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


class Recorder:
    """MockTransport handler that replays queued responses and records requests."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


def make_client(handler, settings=None, store=None, **kwargs) -> tuple[ApiClient, list[float]]:
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    store = store or MemorySettingsStore(settings or OPENAI_SETTINGS)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ApiClient(store, http, sleep=fake_sleep, **kwargs), sleeps


class TestCallApi:
    """Tests for call_api."""

    def test_single_request(self) -> None:
        recorder = Recorder(chat_response("A summary"))
        client, sleeps = make_client(recorder)

        result = asyncio.run(client.call_api("Short article text"))

        assert result == "A summary"
        assert len(recorder.requests) == 1
        assert sleeps == []
        request = recorder.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = recorder.bodies()[0]
        assert body["model"] == "gpt-5-mini"
        assert "Short article text" in body["messages"][0]["content"]

    def test_missing_api_key(self) -> None:
        recorder = Recorder(chat_response("unused"))
        client, _ = make_client(recorder, settings={"provider": "openai"})

        with pytest.raises(NoApiKey):
            asyncio.run(client.call_api("Text"))
        assert recorder.requests == []

    def test_invalid_model_is_corrected_and_saved(self) -> None:
        recorder = Recorder(chat_response("ok"))
        store = MagicMock()
        store.load.return_value = Settings(provider="openai", model="bogus", api_key="sk-test")
        client, _ = make_client(recorder, store=store)

        asyncio.run(client.call_api("Text"))

        store.save.assert_called_once_with({"model": "gpt-5-mini"})
        assert recorder.bodies()[0]["model"] == "gpt-5-mini"

    def test_long_content_is_chunked(self) -> None:
        recorder = Recorder(chat_response("section summary"))
        client, _ = make_client(recorder, settings={**OPENAI_SETTINGS, "model": "gpt-4o-mini"})
        content = " ".join(f"Sentence {i}." for i in range(3000))

        result = asyncio.run(client.call_api(content))

        assert result == "section summary"
        assert len(recorder.requests) > 2
        prompts = [body["messages"][0]["content"] for body in recorder.bodies()]
        assert "section 1 of" in prompts[0]
        assert "Section summaries" in prompts[-1]

    def test_anthropic_provider(self) -> None:
        recorder = Recorder(httpx.Response(200, json={"content": [{"text": "Claude summary"}]}))
        client, _ = make_client(
            recorder, settings={"provider": "anthropic", "model": "claude-sonnet-4-5", "api_key": "sk-ant-x"}
        )

        assert asyncio.run(client.call_api("Text")) == "Claude summary"
        assert recorder.requests[0].headers["x-api-key"] == "sk-ant-x"


class TestChunkedSummary:
    """Tests for summarize_with_chunking."""

    def test_24000_characters_with_small_model(self) -> None:
        provider = ProviderDescriptor(
            id="openai",
            name="Test",
            api_url="https://api.example.com/v1/chat/completions",
            models=MappingProxyType({"tiny": ModelInfo("Tiny", 2048)}),
        )
        settings = Settings(provider="openai", model="tiny", api_key="sk-test")
        content = "a" * 24_000
        expected_chunks = plan_chunks(content, 2048)
        recorder = Recorder(chat_response("part"))
        client, _ = make_client(recorder)

        result = asyncio.run(client.summarize_with_chunking(content, settings, provider))

        bodies = recorder.bodies()
        assert result == "part"
        assert len(expected_chunks) > 1
        assert len(bodies) == len(expected_chunks) + 1
        assert all(body["max_completion_tokens"] == 1024 for body in bodies[:-1])
        assert bodies[-1]["max_completion_tokens"] == 2048
        synthesis = bodies[-1]["messages"][0]["content"]
        assert "Section summaries" in synthesis
        assert "part\n\npart" in synthesis


class TestRetries:
    """Tests for retry and timeout behavior."""

    def test_retries_then_succeeds(self) -> None:
        recorder = Recorder(
            httpx.Response(500, json={"error": {"message": "overloaded"}}),
            httpx.Response(502),
            chat_response("finally"),
        )
        client, sleeps = make_client(recorder)

        assert asyncio.run(client.call_api("Text")) == "finally"
        assert len(recorder.requests) == 3
        assert sleeps == [1.0, 2.0]

    def test_exhausted_retries_raise_last_error(self) -> None:
        recorder = Recorder(httpx.Response(429, json={"error": {"message": "Rate limited"}}))
        client, sleeps = make_client(recorder)

        with pytest.raises(ApiCallFailed, match="Rate limited"):
            asyncio.run(client.call_api("Text"))
        assert len(recorder.requests) == 3
        assert sleeps == [1.0, 2.0]

    def test_status_message_without_body(self) -> None:
        recorder = Recorder(httpx.Response(503))
        client, _ = make_client(recorder, retry_attempts=1)

        with pytest.raises(ApiCallFailed, match="API request failed: 503"):
            asyncio.run(client.call_api("Text"))

    def test_invalid_response_is_retried(self) -> None:
        recorder = Recorder(httpx.Response(200, json={"choices": []}))
        client, sleeps = make_client(recorder)

        with pytest.raises(InvalidResponseFormat):
            asyncio.run(client.call_api("Text"))
        assert len(recorder.requests) == 3

    def test_timeout_is_not_retried(self) -> None:
        calls = []

        async def slow(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            await asyncio.sleep(1)
            return chat_response("late")

        client, sleeps = make_client(slow, timeout=0.05)

        with pytest.raises(RequestTimeout):
            asyncio.run(client.call_api("Text"))
        assert len(calls) == 1
        assert sleeps == []

    def test_transport_timeout_is_not_retried(self) -> None:
        recorder = Recorder(httpx.ReadTimeout("read timed out"))
        client, _ = make_client(recorder)

        with pytest.raises(RequestTimeout):
            asyncio.run(client.call_api("Text"))
        assert len(recorder.requests) == 1

    def test_network_error_is_retried(self) -> None:
        recorder = Recorder(httpx.ConnectError("connection refused"))
        client, sleeps = make_client(recorder)

        with pytest.raises(NetworkError):
            asyncio.run(client.call_api("Text"))
        assert len(recorder.requests) == 3
        assert sleeps == [1.0, 2.0]


class TestCancel:
    """Tests for cancel_request."""

    def test_cancel_in_flight_request(self) -> None:
        started = []

        async def hang(request: httpx.Request) -> httpx.Response:
            started.append(request)
            await asyncio.sleep(10)
            return chat_response("never")

        client, sleeps = make_client(hang)

        async def scenario() -> str:
            task = asyncio.create_task(client.call_api("Text"))
            while not started:
                await asyncio.sleep(0.01)
            client.cancel_request()
            return await task

        with pytest.raises(RequestCancelled):
            asyncio.run(scenario())
        assert len(started) == 1
        assert sleeps == []

    def test_cancel_without_request_is_noop(self) -> None:
        client, _ = make_client(Recorder(chat_response("x")))
        client.cancel_request()
        client.cancel_request()


class TestLegacyPath:
    """Tests for providers missing from the catalog."""

    def test_unknown_provider_uses_legacy_openai(self) -> None:
        recorder = Recorder(chat_response("legacy summary"))
        client, _ = make_client(recorder, settings={"provider": "old", "model": "whatever", "api_key": "sk-old"})

        assert asyncio.run(client.call_api("Text")) == "legacy summary"
        assert str(recorder.requests[0].url) == LEGACY_API_URL
        body = recorder.bodies()[0]
        assert body["model"] == "gpt-5-mini"
        assert body["max_completion_tokens"] == 8192

    def test_legacy_without_choices(self) -> None:
        recorder = Recorder(httpx.Response(200, json={"choices": []}))
        client, _ = make_client(recorder)

        with pytest.raises(InvalidResponseFormat, match="No response from OpenAI API"):
            asyncio.run(client.legacy_openai_call("Text", "sk-test"))


class TestApiKeyCheck:
    """Tests for test_api_key."""

    def test_unsupported_provider(self) -> None:
        recorder = Recorder(chat_response("x"))
        client, _ = make_client(recorder)

        result = asyncio.run(client.test_api_key("foo", "key"))

        assert not result.ok
        assert result.error_message == "Unsupported provider: foo"
        assert recorder.requests == []

    def test_valid_key(self) -> None:
        recorder = Recorder(chat_response("hi"))
        client, _ = make_client(recorder)

        result = asyncio.run(client.test_api_key("openai", "sk-new"))

        assert result.ok
        body = recorder.bodies()[0]
        assert body["max_completion_tokens"] == 10
        assert recorder.requests[0].headers["Authorization"] == "Bearer sk-new"

    def test_rejected_key_reports_provider_message(self) -> None:
        recorder = Recorder(httpx.Response(401, json={"error": {"message": "Incorrect API key"}}))
        client, _ = make_client(recorder)

        result = asyncio.run(client.test_api_key("openai", "sk-bad"))

        assert not result.ok
        assert result.error_message == "Incorrect API key"

    def test_rejected_key_without_body(self) -> None:
        recorder = Recorder(httpx.Response(403))
        client, _ = make_client(recorder)

        result = asyncio.run(client.test_api_key("gemini", "AIbad"))

        assert result.error_message == "API request failed: 403"
        assert "gemini-2.5-flash:generateContent?key=AIbad" in str(recorder.requests[0].url)

    def test_key_with_control_character_reports_failure(self) -> None:
        recorder = Recorder(chat_response("hi"))
        client, _ = make_client(recorder)

        result = asyncio.run(client.test_api_key("gemini", "AIkey\n"))

        assert not result.ok
        assert "Invalid" in result.error_message
        assert recorder.requests == []


class TestInvalidRequestUrl:
    """Tests for keys that cannot form a request URL."""

    def test_gemini_key_with_newline_raises_api_error(self) -> None:
        recorder = Recorder(httpx.Response(200, json={"candidates": []}))
        settings = {"provider": "gemini", "model": "gemini-2.5-flash", "api_key": "AIkey\n"}
        client, _ = make_client(recorder, settings)

        with pytest.raises(ApiCallFailed, match="Invalid request URL"):
            asyncio.run(client.call_api("Short article text"))
        assert recorder.requests == []
