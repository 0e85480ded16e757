"""Static catalog of supported LLM providers."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from ..errors import UnsupportedProvider


@dataclass(frozen=True)
class ModelInfo:
    """Display name and output token limit for one model."""

    name: str
    max_tokens: int


@dataclass(frozen=True)
class ProviderDescriptor:
    """Immutable description of an LLM provider."""

    id: str
    name: str
    api_url: str
    models: Mapping[str, ModelInfo] = field(default_factory=dict)
    temperature: float | None = None
    key_prefix: str = ""

    @property
    def default_model(self) -> str | None:
        return next(iter(self.models), None)

    def max_tokens_for(self, model: str) -> int:
        return self.models[model].max_tokens


OPENAI = ProviderDescriptor(
    id="openai",
    name="OpenAI",
    api_url="https://api.openai.com/v1/chat/completions",
    models=MappingProxyType(
        {
            "gpt-5-mini": ModelInfo("GPT-5 Mini", 8192),
            "gpt-5-nano": ModelInfo("GPT-5 Nano", 8192),
            "gpt-4o-mini": ModelInfo("GPT-4o Mini", 4096),
            "gpt-4.1-mini": ModelInfo("GPT-4.1 Mini", 4096),
        }
    ),
    temperature=0.7,
    key_prefix="sk-",
)

ANTHROPIC = ProviderDescriptor(
    id="anthropic",
    name="Anthropic",
    api_url="https://api.anthropic.com/v1/messages",
    models=MappingProxyType(
        {
            "claude-sonnet-4-5": ModelInfo("Claude Sonnet 4.5", 8192),
            "claude-3-5-haiku-20241022": ModelInfo("Claude Haiku 3.5", 8192),
        }
    ),
    key_prefix="sk-ant-",
)

GEMINI = ProviderDescriptor(
    id="gemini",
    name="Google Gemini",
    api_url="https://generativelanguage.googleapis.com/v1beta/models",
    models=MappingProxyType(
        {
            "gemini-2.5-flash": ModelInfo("Gemini 2.5 Flash", 8192),
            "gemini-2.5-flash-preview-05-20": ModelInfo("Gemini 2.5 Flash Preview", 8192),
        }
    ),
    key_prefix="AI",
)

GROK = ProviderDescriptor(
    id="grok",
    name="xAI Grok",
    api_url="https://api.x.ai/v1/chat/completions",
    models=MappingProxyType(
        {
            "grok-4-fast": ModelInfo("Grok 4 Fast", 4096),
            "grok-beta": ModelInfo("Grok Beta", 4096),
        }
    ),
    key_prefix="xai-",
)

PROVIDERS: Mapping[str, ProviderDescriptor] = MappingProxyType(
    {provider.id: provider for provider in (OPENAI, ANTHROPIC, GEMINI, GROK)}
)


def get_provider(provider_id: str | None) -> ProviderDescriptor | None:
    """Look up a provider by id (case-insensitive)."""
    if not provider_id:
        return None
    return PROVIDERS.get(provider_id.lower())


def require_provider(provider_id: str) -> ProviderDescriptor:
    provider = get_provider(provider_id)
    if provider is None:
        raise UnsupportedProvider(provider_id)
    return provider


def validate_api_key(provider_id: str, api_key: str | None) -> bool:
    """Check that a key carries the provider's expected prefix."""
    provider = get_provider(provider_id)
    if provider is None or not api_key:
        return False
    return api_key.startswith(provider.key_prefix)


def resolve_model(provider: ProviderDescriptor, model: str | None) -> str | None:
    """Return ``model`` if cataloged, else the provider's first model."""
    if model and model in provider.models:
        return model
    return provider.default_model
