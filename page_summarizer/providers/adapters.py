"""Per-provider translation of requests, headers, URLs and responses.

Each provider speaks a different wire format. An adapter turns a prompt
into the provider's JSON body and pulls the generated text back out of
the decoded response, so the API client can treat all of them alike.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping

from ..errors import InvalidResponseFormat, UnsupportedProvider
from .registry import ProviderDescriptor

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise, accurate summaries of articles."
)
ANTHROPIC_VERSION = "2023-06-01"
FIXED_TEMPERATURE = 0.7
GEMINI_FALLBACK_MAX_TOKENS = 8192

# Models under these prefixes reject a custom temperature
NO_TEMPERATURE_PREFIXES = ("gpt-5",)


def _first(value: Any) -> Any:
    """Return the first element of a non-empty list, else None."""
    if isinstance(value, list) and value:
        return value[0]
    return None


def _require_text(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidResponseFormat()
    return value


class ProviderAdapter(ABC):
    """Uniform interface over one provider's HTTP API."""

    provider_id: str

    @abstractmethod
    def build_request(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        provider: ProviderDescriptor,
    ) -> dict[str, Any]:
        """Return the JSON request body."""

    def headers(self, api_key: str) -> dict[str, str]:
        return {}

    def api_url(self, provider: ProviderDescriptor, model: str, api_key: str) -> str:
        return provider.api_url

    @abstractmethod
    def parse_response(self, data: Mapping[str, Any]) -> str:
        """Extract the generated text or raise InvalidResponseFormat."""

    def request_headers(self, api_key: str) -> dict[str, str]:
        return {"Content-Type": "application/json", **self.headers(api_key)}


class _ChatCompletionsAdapter(ProviderAdapter):
    """Shared parsing for OpenAI-compatible chat completion responses."""

    def headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def parse_response(self, data: Mapping[str, Any]) -> str:
        choice = _first(data.get("choices")) if isinstance(data, Mapping) else None
        if not isinstance(choice, Mapping):
            raise InvalidResponseFormat()
        message = choice.get("message")
        if not isinstance(message, Mapping):
            raise InvalidResponseFormat()
        return _require_text(message.get("content"))


class OpenAIAdapter(_ChatCompletionsAdapter):
    provider_id = "openai"

    def build_request(
        self, prompt: str, model: str, max_tokens: int, provider: ProviderDescriptor
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model,
            "max_completion_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        temperature = provider.temperature
        if temperature is not None and not model.startswith(NO_TEMPERATURE_PREFIXES):
            body["temperature"] = temperature
        return body


class GrokAdapter(_ChatCompletionsAdapter):
    provider_id = "grok"

    def build_request(
        self, prompt: str, model: str, max_tokens: int, provider: ProviderDescriptor
    ) -> dict[str, Any]:
        return {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": FIXED_TEMPERATURE,
        }


class AnthropicAdapter(ProviderAdapter):
    provider_id = "anthropic"

    def build_request(
        self, prompt: str, model: str, max_tokens: int, provider: ProviderDescriptor
    ) -> dict[str, Any]:
        return {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "system": DEFAULT_SYSTEM_PROMPT,
        }

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "anthropic-dangerous-direct-browser-access": "true",
        }

    def parse_response(self, data: Mapping[str, Any]) -> str:
        block = _first(data.get("content")) if isinstance(data, Mapping) else None
        if not isinstance(block, Mapping):
            raise InvalidResponseFormat()
        return _require_text(block.get("text"))


class GeminiAdapter(ProviderAdapter):
    provider_id = "gemini"

    def build_request(
        self, prompt: str, model: str, max_tokens: int, provider: ProviderDescriptor
    ) -> dict[str, Any]:
        if not max_tokens:
            info = provider.models.get(model)
            max_tokens = info.max_tokens if info else GEMINI_FALLBACK_MAX_TOKENS
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": FIXED_TEMPERATURE,
            },
        }

    def api_url(self, provider: ProviderDescriptor, model: str, api_key: str) -> str:
        # Gemini authenticates through the query string, not a header
        return f"{provider.api_url}/{model}:generateContent?key={api_key}"

    def parse_response(self, data: Mapping[str, Any]) -> str:
        candidate = _first(data.get("candidates")) if isinstance(data, Mapping) else None
        if not isinstance(candidate, Mapping):
            raise InvalidResponseFormat()
        content = candidate.get("content")
        if not isinstance(content, Mapping):
            raise InvalidResponseFormat()
        part = _first(content.get("parts"))
        if not isinstance(part, Mapping):
            raise InvalidResponseFormat()
        return _require_text(part.get("text"))


ADAPTERS: Mapping[str, ProviderAdapter] = {
    adapter.provider_id: adapter
    for adapter in (OpenAIAdapter(), AnthropicAdapter(), GeminiAdapter(), GrokAdapter())
}


def get_adapter(provider_id: str) -> ProviderAdapter:
    """Return the adapter for ``provider_id`` or raise UnsupportedProvider."""
    adapter = ADAPTERS.get(provider_id)
    if adapter is None:
        raise UnsupportedProvider(provider_id)
    return adapter


def extract_error_message(data: Any) -> str | None:
    """Pull a provider error message out of a decoded error body."""
    if not isinstance(data, Mapping):
        return None
    error = data.get("error")
    if isinstance(error, Mapping) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(data.get("message"), str):
        return data["message"]
    return None
