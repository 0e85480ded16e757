"""LLM provider catalog and wire-format adapters."""

from .adapters import (
    AnthropicAdapter,
    GeminiAdapter,
    GrokAdapter,
    OpenAIAdapter,
    ProviderAdapter,
    get_adapter,
)
from .registry import (
    PROVIDERS,
    ModelInfo,
    ProviderDescriptor,
    get_provider,
    require_provider,
    resolve_model,
    validate_api_key,
)

__all__ = [
    "PROVIDERS",
    "AnthropicAdapter",
    "GeminiAdapter",
    "GrokAdapter",
    "ModelInfo",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderDescriptor",
    "get_adapter",
    "get_provider",
    "require_provider",
    "resolve_model",
    "validate_api_key",
]
