"""
In-Process TTL Cache.

Thread-safe key/value store with explicit expiry, shared by the result-cache
oracle (prior analyses) and the version-policy oracle (version histories).

- Every entry carries its own expiry timestamp; reads never return stale data
- Concurrent writers race, last write wins
- Bounded: the oldest entry is evicted once max_entries is reached
"""

import threading
import time
from typing import Any, Callable, Hashable, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS: float = 300.0
DEFAULT_MAX_ENTRIES: int = 1024


class TTLCache:
    """Synchronized dict with per-entry expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        # key → (expires_at, value); dict order == insertion order
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """Value for ``key``, or None if absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if expires_at <= now:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self._clock() + (ttl_seconds or self.ttl_seconds)
        with self._lock:
            # Re-insert so an overwritten key moves to the newest position
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("cache_evicted", cache=self.name, key=str(oldest))
            self._entries[key] = (expires_at, value)

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("cache_purged", cache=self.name, removed=len(expired))
        return len(expired)

    def stats(self) -> dict:
        with self._lock:
            size = len(self._entries)
        return {
            "name": self.name,
            "size": size,
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None
