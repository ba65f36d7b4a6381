"""
MetadataCache - Write-once lookup cache shared by the calls of one client.

Features:
- First writer wins: once a key is populated it is never replaced
- Safe for concurrent readers from threads and asyncio tasks
- Lifetime tied to the owning client (no module-level singleton)
"""

import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    rejected_writes: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "rejected_writes": self.rejected_writes,
            "size": self.size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


_MISSING = object()


class MetadataCache:
    """
    Immutable-after-population cache keyed by endpoint identifier.

    Usage:
        cache = MetadataCache()

        metadata = await cache.get_or_fetch("metadata_v1.0", fetch_metadata)
    """

    def __init__(self, debug: bool = False):
        self._entries: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()
        self._debug = debug

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._entries.get(key, _MISSING)
            if value is _MISSING:
                self._stats.misses += 1
                return default
            self._stats.hits += 1
            return value

    def set_if_absent(self, key: str, value: Any) -> Any:
        """
        Publish ``value`` unless ``key`` is already populated.

        Returns:
            The value stored for ``key`` after the call (the winner)
        """
        with self._lock:
            existing = self._entries.get(key, _MISSING)
            if existing is not _MISSING:
                self._stats.rejected_writes += 1
                self._log(f"REJECT: {key[:50]} already populated")
                return existing
            self._entries[key] = value
            self._log(f"SET: {key[:50]}")
            return value

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value, fetching and publishing it on a miss.

        Concurrent misses may each fetch; only the first result is kept
        and every caller gets that one.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        return self.set_if_absent(key, await fetch())

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        with self._lock:
            self._stats.size = len(self._entries)
            return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[MetadataCache] {message}")
