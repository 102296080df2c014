"""
In-memory TTL cache for upstream price-check results.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger


DEFAULT_TTL_SECONDS = 1800


@dataclass(frozen=True)
class CacheEntry:
    """Cached upstream result with an absolute expiry."""

    fingerprint: str
    value: Any
    expires_at: float
    size_bytes: int

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


# Sentinel returned on a miss; cached values may legitimately be None or empty.
MISSING = _Missing()


def _approx_size(fingerprint: str, value: Any) -> int:
    try:
        payload = json.dumps(value, default=str)
    except (TypeError, ValueError):
        payload = repr(value)
    return len(fingerprint.encode("utf-8")) + len(payload.encode("utf-8"))


class ResultCache:
    """Fingerprint-keyed result cache with lazy TTL expiry and no LRU eviction."""

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self.logger = get_logger("pricecheck.cache")
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._size_bytes = 0
        self._hits = 0
        self._misses = 0

    def get(self, fingerprint: str) -> Any:
        """Return the cached value, or ``MISSING`` if absent or expired."""
        entry = self._store.get(fingerprint)
        if entry is not None and entry.is_expired(self._clock()):
            self._discard(fingerprint)
            entry = None

        if entry is None:
            self._misses += 1
            self.logger.debug("Cache miss", fingerprint=fingerprint)
            return MISSING

        self._hits += 1
        self.logger.debug("Cache hit", fingerprint=fingerprint)
        return entry.value

    def contains(self, fingerprint: str) -> bool:
        """Whether a live entry exists. Does not touch hit/miss counters."""
        entry = self._store.get(fingerprint)
        return entry is not None and not entry.is_expired(self._clock())

    def set(self, fingerprint: str, value: Any, ttl: Optional[float] = None) -> None:
        """Insert or overwrite an entry."""
        ttl_seconds = self.default_ttl if ttl is None else ttl
        self._discard(fingerprint)

        entry = CacheEntry(
            fingerprint=fingerprint,
            value=value,
            expires_at=self._clock() + ttl_seconds,
            size_bytes=_approx_size(fingerprint, value),
        )
        self._store[fingerprint] = entry
        self._size_bytes += entry.size_bytes
        self.logger.debug("Cached result", fingerprint=fingerprint, ttl=ttl_seconds)

    def _discard(self, fingerprint: str) -> None:
        entry = self._store.pop(fingerprint, None)
        if entry is not None:
            self._size_bytes -= entry.size_bytes

    def prune_expired(self) -> int:
        """Remove all expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            self._discard(key)
        return len(expired)

    def clear(self) -> None:
        """Drop every entry. Lifetime hit/miss counters are kept."""
        self._store.clear()
        self._size_bytes = 0
        self.logger.info("Result cache cleared")

    def stats(self) -> Dict[str, int]:
        now = self._clock()
        return {
            "entry_count": sum(1 for entry in self._store.values() if not entry.is_expired(now)),
            "hit_count": self._hits,
            "miss_count": self._misses,
            "approx_size_bytes": self._size_bytes,
        }

    def __len__(self) -> int:
        return len(self._store)
