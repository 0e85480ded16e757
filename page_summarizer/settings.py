"""User settings: the pydantic model, normalization and persistence."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, Mapping, Protocol

from pydantic import BaseModel, ConfigDict

from .constants import DEFAULTS, SUMMARY_FORMATS, SUMMARY_LENGTHS, YOUTUBE_TRANSCRIPT_MODES
from .providers.registry import get_provider

logger = logging.getLogger(__name__)

SummaryLength = Literal["BRIEF", "STANDARD", "DETAILED"]
SummaryFormat = Literal["paragraph", "bullets"]
TranscriptMode = Literal["auto", "no-auto"]

API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "grok": "GROK_API_KEY",
}


class Settings(BaseModel):
    """Settings for one summarization request."""

    model_config = ConfigDict(frozen=True)

    provider: str = DEFAULTS["provider"]
    model: str = DEFAULTS["model"]
    api_key: str = ""
    summary_length: SummaryLength = DEFAULTS["summary_length"]
    summary_format: SummaryFormat = DEFAULTS["summary_format"]
    youtube_transcript_mode: TranscriptMode = DEFAULTS["youtube_transcript_mode"]

    def cache_fields(self) -> dict[str, str]:
        """The subset of settings that changes the generated summary."""
        return {
            "provider": self.provider,
            "model": self.model,
            "summary_length": self.summary_length,
            "summary_format": self.summary_format,
        }


def _pick(raw: Mapping[str, Any], key: str, allowed: Any = None) -> Any:
    value = raw.get(key)
    if not value or (allowed is not None and value not in allowed):
        return DEFAULTS[key]
    return value


def normalize_settings(raw: Mapping[str, Any] | None = None) -> Settings:
    """
    Build a Settings value from loosely-typed stored data.

    Missing or unrecognized values fall back to defaults. A model that the
    chosen provider does not offer is replaced by the provider's first
    model; unknown providers keep their model untouched.
    """
    raw = dict(raw or {})
    provider_id = _pick(raw, "provider")
    model = _pick(raw, "model")

    provider = get_provider(provider_id)
    if provider is not None and model not in provider.models and provider.default_model:
        model = provider.default_model

    return Settings(
        provider=provider_id,
        model=model,
        api_key=raw.get("api_key") or "",
        summary_length=_pick(raw, "summary_length", SUMMARY_LENGTHS),
        summary_format=_pick(raw, "summary_format", SUMMARY_FORMATS),
        youtube_transcript_mode=_pick(raw, "youtube_transcript_mode", YOUTUBE_TRANSCRIPT_MODES),
    )


class SettingsStore(Protocol):
    """Persistent settings collaborator."""

    def load(self) -> Settings: ...

    def save(self, settings: Settings | Mapping[str, Any], merge: bool = True) -> Settings: ...


def _as_dict(settings: Settings | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(settings, Settings):
        return settings.model_dump()
    return dict(settings)


class MemorySettingsStore:
    """Settings kept in process memory."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = dict(initial or {})

    def load(self) -> Settings:
        return normalize_settings(self.data)

    def save(self, settings: Settings | Mapping[str, Any], merge: bool = True) -> Settings:
        base = self.load().model_dump() if merge else {}
        normalized = normalize_settings({**base, **_as_dict(settings)})
        self.data = normalized.model_dump()
        return normalized


def get_config_dir() -> Path:
    """Get the settings directory path."""
    config_dir = Path.home() / ".config" / "page-summarizer"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


class JsonSettingsStore:
    """Settings persisted as a JSON document under the user's config directory."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or get_config_dir() / "settings.json"

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Settings:
        settings = normalize_settings(self._read())
        if not settings.api_key:
            env_key = os.environ.get(API_KEY_ENV_VARS.get(settings.provider, ""), "")
            if env_key:
                settings = settings.model_copy(update={"api_key": env_key})
        return settings

    def save(self, settings: Settings | Mapping[str, Any], merge: bool = True) -> Settings:
        base = normalize_settings(self._read()).model_dump() if merge else {}
        normalized = normalize_settings({**base, **_as_dict(settings)})
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(normalized.model_dump(), indent=2), encoding="utf-8")
        return normalized
