"""Tests for the provider catalog and adapters."""

import pytest

from page_summarizer.errors import InvalidResponseFormat, UnsupportedProvider
from page_summarizer.providers import (
    PROVIDERS,
    AnthropicAdapter,
    GeminiAdapter,
    GrokAdapter,
    OpenAIAdapter,
    get_adapter,
    get_provider,
    require_provider,
    resolve_model,
    validate_api_key,
)
from page_summarizer.providers.adapters import extract_error_message


class TestRegistry:
    """Tests for provider lookups."""

    def test_four_providers(self) -> None:
        assert set(PROVIDERS) == {"openai", "anthropic", "gemini", "grok"}

    def test_lookup_is_case_insensitive(self) -> None:
        assert get_provider("OpenAI") is PROVIDERS["openai"]

    def test_unknown_provider(self) -> None:
        assert get_provider("mistral") is None
        assert get_provider(None) is None
        with pytest.raises(UnsupportedProvider, match="Unsupported provider: mistral"):
            require_provider("mistral")

    def test_catalog_is_immutable(self) -> None:
        with pytest.raises(TypeError):
            PROVIDERS["other"] = PROVIDERS["openai"]  # type: ignore[index]

    def test_default_model_is_first(self) -> None:
        assert PROVIDERS["openai"].default_model == "gpt-5-mini"

    def test_resolve_model(self) -> None:
        openai = PROVIDERS["openai"]
        assert resolve_model(openai, "gpt-4o-mini") == "gpt-4o-mini"
        assert resolve_model(openai, "claude-sonnet-4-5") == "gpt-5-mini"
        assert resolve_model(openai, None) == "gpt-5-mini"

    def test_validate_api_key(self) -> None:
        assert validate_api_key("anthropic", "sk-ant-abc")
        assert not validate_api_key("anthropic", "sk-abc")
        assert validate_api_key("grok", "xai-123")
        assert not validate_api_key("grok", "")
        assert not validate_api_key("nope", "sk-abc")


class TestOpenAIAdapter:
    """Tests for the OpenAI wire format."""

    def test_gpt5_omits_temperature(self) -> None:
        body = OpenAIAdapter().build_request("Hi", "gpt-5-mini", 8192, PROVIDERS["openai"])
        assert body["max_completion_tokens"] == 8192
        assert body["messages"] == [{"role": "user", "content": "Hi"}]
        assert "temperature" not in body

    def test_older_model_sends_temperature(self) -> None:
        body = OpenAIAdapter().build_request("Hi", "gpt-4o-mini", 4096, PROVIDERS["openai"])
        assert body["temperature"] == 0.7

    def test_headers(self) -> None:
        headers = OpenAIAdapter().request_headers("sk-test")
        assert headers["Authorization"] == "Bearer sk-test"
        assert headers["Content-Type"] == "application/json"

    def test_parse_response(self) -> None:
        data = {"choices": [{"message": {"content": "Summary"}}]}
        assert OpenAIAdapter().parse_response(data) == "Summary"

    @pytest.mark.parametrize(
        "data",
        [{}, {"choices": []}, {"choices": [{"message": {}}]}, {"choices": [{"message": {"content": ""}}]}],
    )
    def test_parse_response_invalid(self, data: dict) -> None:
        with pytest.raises(InvalidResponseFormat):
            OpenAIAdapter().parse_response(data)


class TestOtherAdapters:
    """Tests for Anthropic, Gemini and Grok wire formats."""

    def test_anthropic(self) -> None:
        adapter = AnthropicAdapter()
        body = adapter.build_request("Hi", "claude-sonnet-4-5", 8192, PROVIDERS["anthropic"])
        assert body["max_tokens"] == 8192
        assert "system" in body
        headers = adapter.request_headers("sk-ant-x")
        assert headers["x-api-key"] == "sk-ant-x"
        assert headers["anthropic-version"] == "2023-06-01"
        assert adapter.parse_response({"content": [{"type": "text", "text": "Done"}]}) == "Done"

    def test_gemini_url_and_body(self) -> None:
        adapter = GeminiAdapter()
        gemini = PROVIDERS["gemini"]
        url = adapter.api_url(gemini, "gemini-2.5-flash", "AIkey")
        assert url.endswith("/models/gemini-2.5-flash:generateContent?key=AIkey")
        body = adapter.build_request("Hi", "gemini-2.5-flash", 0, gemini)
        assert body["contents"] == [{"parts": [{"text": "Hi"}]}]
        assert body["generationConfig"]["maxOutputTokens"] == 8192

    def test_gemini_parse(self) -> None:
        data = {"candidates": [{"content": {"parts": [{"text": "Gemini says"}]}}]}
        assert GeminiAdapter().parse_response(data) == "Gemini says"
        with pytest.raises(InvalidResponseFormat):
            GeminiAdapter().parse_response({"candidates": [{"content": {}}]})

    def test_grok(self) -> None:
        body = GrokAdapter().build_request("Hi", "grok-4-fast", 4096, PROVIDERS["grok"])
        assert body["max_tokens"] == 4096
        assert body["temperature"] == 0.7

    def test_get_adapter(self) -> None:
        assert isinstance(get_adapter("gemini"), GeminiAdapter)
        with pytest.raises(UnsupportedProvider):
            get_adapter("mistral")


class TestErrorMessage:
    """Tests for extract_error_message."""

    def test_nested_error(self) -> None:
        assert extract_error_message({"error": {"message": "Bad key"}}) == "Bad key"

    def test_top_level_message(self) -> None:
        assert extract_error_message({"message": "Quota"}) == "Quota"

    def test_nothing(self) -> None:
        assert extract_error_message(None) is None
        assert extract_error_message({"error": "x"}) is None
