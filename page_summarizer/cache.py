"""Summary cache keyed by URL and the settings that shape a summary."""

import base64
import hashlib
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol

from .constants import CACHE_TTL_HOURS
from .settings import Settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "summary_"


@dataclass
class CacheEntry:
    """Cached summary data."""

    summary: str
    timestamp: float  # seconds since the epoch
    url: str
    settings: dict[str, str] = field(default_factory=dict)


class KeyValueStore(Protocol):
    """Storage collaborator; individual reads and writes are atomic."""

    def get(self, keys: Iterable[str]) -> dict[str, Any]: ...

    def set(self, entries: Mapping[str, Any]) -> None: ...

    def remove(self, keys: Iterable[str]) -> None: ...

    def items(self) -> dict[str, Any]: ...


class MemoryStore:
    """Session-scoped store that lives as long as the process."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: self._data[key] for key in keys if key in self._data}

    def set(self, entries: Mapping[str, Any]) -> None:
        self._data.update(entries)

    def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def items(self) -> dict[str, Any]:
        return dict(self._data)


def get_cache_dir() -> Path:
    """Get the cache directory path."""
    cache_dir = Path.home() / ".cache" / "page-summarizer"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


class JsonFileStore:
    """Store that keeps one JSON file per key."""

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory or get_cache_dir()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _load(self, path: Path) -> Any:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable cache file %s: %s", path.name, e)
            return None

    def get(self, keys: Iterable[str]) -> dict[str, Any]:
        result = {}
        for key in keys:
            path = self._path(key)
            if path.exists():
                value = self._load(path)
                if value is not None:
                    result[key] = value
        return result

    def set(self, entries: Mapping[str, Any]) -> None:
        for key, value in entries.items():
            self._path(key).write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")

    def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._path(key).unlink(missing_ok=True)

    def items(self) -> dict[str, Any]:
        result = {}
        for path in sorted(self.directory.glob("*.json")):
            value = self._load(path)
            if value is not None:
                result[path.stem] = value
        return result


def _hash_url(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


def _encode_settings(settings: Settings) -> str:
    raw = "-".join(settings.cache_fields().values())
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


class SummaryCache:
    """
    Deduplicates summaries of the same page with the same settings.

    An entry is valid while it is strictly younger than ``ttl_hours``;
    reading an older entry evicts it and behaves like a miss.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        ttl_hours: float = CACHE_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.ttl_seconds = ttl_hours * 3600
        self.ttl_hours = ttl_hours
        self._clock = clock

    def generate_key(self, url: str, settings: Settings) -> str:
        """Derive the cache key from the full URL and summary-shaping settings."""
        return f"{KEY_PREFIX}{_hash_url(url)}_{_encode_settings(settings)}"

    def _expired(self, timestamp: Any, now: float) -> bool:
        return not isinstance(timestamp, (int, float)) or now - timestamp >= self.ttl_seconds

    def get(self, url: str, settings: Settings) -> CacheEntry | None:
        """Return the cached entry, or None when missing or expired."""
        key = self.generate_key(url, settings)
        try:
            raw = self.store.get([key]).get(key)
            if not raw:
                return None
            if self._expired(raw.get("timestamp"), self._clock()):
                logger.debug("Cache entry %s expired", key)
                self.store.remove([key])
                return None
            return CacheEntry(**raw)
        except (OSError, TypeError, AttributeError) as e:
            logger.warning("Cache get error: %s", e)
            return None

    def set(self, url: str, settings: Settings, summary: str) -> CacheEntry:
        """Store a summary for (url, settings), replacing any previous entry."""
        entry = CacheEntry(
            summary=summary,
            timestamp=self._clock(),
            url=url,
            settings=settings.cache_fields(),
        )
        try:
            self.store.set({self.generate_key(url, settings): asdict(entry)})
        except OSError as e:
            logger.warning("Cache set error: %s", e)
        return entry

    def _summary_items(self) -> dict[str, Any]:
        return {key: value for key, value in self.store.items().items() if key.startswith(KEY_PREFIX)}

    def cleanup(self) -> int:
        """Evict every expired entry. Returns the number removed."""
        now = self._clock()
        try:
            expired = [
                key
                for key, value in self._summary_items().items()
                if not isinstance(value, dict) or self._expired(value.get("timestamp"), now)
            ]
            if expired:
                self.store.remove(expired)
        except OSError as e:
            logger.warning("Cache cleanup error: %s", e)
            return 0
        if expired:
            logger.debug("Removed %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> int:
        """Evict every entry. Returns the number removed."""
        try:
            keys = list(self._summary_items())
            if keys:
                self.store.remove(keys)
        except OSError as e:
            logger.warning("Cache clear error: %s", e)
            return 0
        return len(keys)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        try:
            items = self._summary_items()
        except OSError as e:
            logger.warning("Cache stats error: %s", e)
            items = {}
        expired = sum(
            1 for value in items.values() if isinstance(value, dict) and self._expired(value.get("timestamp"), now)
        )
        return {
            "total_entries": len(items),
            "active_entries": len(items) - expired,
            "expired_entries": expired,
            "total_size_bytes": sum(len(json.dumps(value)) for value in items.values()),
            "cache_ttl_hours": self.ttl_hours,
        }
