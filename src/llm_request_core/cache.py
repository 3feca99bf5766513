"""In-memory response cache with TTL expiry and a byte budget."""

import hashlib
import json
import logging
import time
from typing import Any, Callable, Optional

from .config import CacheConfig
from .models import CacheEntry

logger = logging.getLogger(__name__)


def normalize_prompt(prompt: str) -> str:
    """Strip and collapse whitespace so cosmetic differences share a key."""
    return " ".join(prompt.split())


def fingerprint(provider: str, prompt: str, options: Optional[dict[str, Any]] = None) -> str:
    """Build a stable cache key for a generation request.

    Options are serialized with sorted keys, so their insertion order does not
    matter, while any differing option value yields a different key.
    """
    options_json = json.dumps(options or {}, sort_keys=True, separators=(",", ":"), default=str)
    raw = "\x1f".join((provider, normalize_prompt(prompt), options_json))
    return "ai:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()


def payload_size(value: Any) -> int:
    """Size of a value as UTF-8 encoded JSON."""
    return len(json.dumps(value, ensure_ascii=False, default=str).encode("utf-8"))


class ResponseCache:
    """TTL cache bounded by total payload bytes, evicting least recently used.

    Eviction scans for the entry with the oldest ``last_accessed``. The cache
    is best-effort: internal failures are logged and behave like a miss.
    """

    def __init__(
        self,
        max_size: int = 1_000_000,
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._current_size = 0
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_config(cls, config: CacheConfig, **kwargs: Any) -> "ResponseCache":
        """Create a cache from settings."""
        return cls(max_size=config.max_size, default_ttl=config.default_ttl, **kwargs)

    @property
    def current_size(self) -> int:
        """Bytes held by live entries."""
        return self._current_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None on miss or expiry."""
        try:
            entry = self._entries.get(key)
            now = self._clock()
            if entry is None or entry.is_expired(now):
                if entry is not None:
                    self._remove(key)
                self._misses += 1
                return None

            entry.last_accessed = now
            self._hits += 1
            return entry.data
        except Exception:
            logger.warning("Cache lookup failed for %s", key, exc_info=True)
            self._misses += 1
            return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store a value.

        Returns:
            True if the value was stored
        """
        try:
            return self._set(key, value, self._default_ttl if ttl is None else ttl)
        except Exception:
            logger.warning("Cache store failed for %s", key, exc_info=True)
            return False

    def _set(self, key: str, value: Any, ttl: float) -> bool:
        size = payload_size(value)
        self.cleanup()

        if key in self._entries:
            self._remove(key)

        if size > self._max_size:
            logger.debug("Not caching %s: %d bytes exceeds budget of %d", key, size, self._max_size)
            return False

        while self._current_size + size > self._max_size and self._entries:
            self._evict_lru()

        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            data=value,
            created_at=now,
            last_accessed=now,
            ttl=ttl,
            size_bytes=size,
        )
        self._current_size += size
        return True

    def _evict_lru(self) -> None:
        oldest = min(self._entries.values(), key=lambda e: e.last_accessed)
        logger.debug("Evicting %s (%d bytes)", oldest.key, oldest.size_bytes)
        self._remove(oldest.key)

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._current_size -= entry.size_bytes

    def delete(self, key: str) -> bool:
        """Delete an entry. Returns True if it existed."""
        if key not in self._entries:
            return False
        self._remove(key)
        return True

    def cleanup(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)
        return len(expired)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._current_size = 0

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        lookups = self._hits + self._misses
        return {
            "count": len(self._entries),
            "current_size": self._current_size,
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }
