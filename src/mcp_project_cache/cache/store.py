"""Process-wide in-memory cache store.

A namespaced key/value map with per-entry TTL, regex bulk operations and
hit/miss accounting. Keys follow ``namespace:part:part`` and other
components build ``^namespace:`` patterns against that layout, so
``generate_key`` must stay a plain colon join.
"""

import json
import re
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from ..config import CacheSettings
from .models import CacheStats, TTLClass

logger = structlog.get_logger("cache.store")

Pattern = re.Pattern[str] | str


@dataclass
class CacheEntry:
    """Stored value with its expiry bookkeeping. Private to the store."""

    key: str
    value: Any
    created_at: float
    ttl: float
    size_bytes: int = 0

    def expired(self, now: float) -> bool:
        return self.ttl > 0 and now >= self.created_at + self.ttl


def _estimate_size(value: Any) -> int:
    """Approximate the in-memory footprint of a cached value."""
    if hasattr(value, "model_dump_json"):
        return len(value.model_dump_json())
    if isinstance(value, (str, bytes)):
        return len(value)
    try:
        return len(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return sys.getsizeof(value)


class CacheStore:
    """Namespaced key/value store with TTL and pattern operations.

    None of the methods raise; a miss is a normal ``None`` return.
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or CacheSettings()
        self._clock = clock
        self._data: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._ttl_map: dict[str, int] = {
            "metadata": self.settings.metadata_ttl_s,
            "structure": self.settings.structure_ttl_s,
            "operation": self.settings.operation_ttl_s,
        }

    @property
    def max_keys(self) -> int:
        return self.settings.max_keys

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._data[key]
            logger.debug("Cache key expired", key=key)
            return None
        return entry

    def get(self, key: str) -> Any | None:
        """Return the value for ``key`` and count a hit, or count a miss.

        Args:
            key: Full cache key, e.g. ``metadata:/abs/path``

        Returns:
            The stored value, or None when absent or expired
        """
        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        return entry.value

    def peek(self, key: str) -> Any | None:
        """Like ``get`` but leaves the hit/miss counters alone."""
        entry = self._live_entry(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store ``value`` under ``key``.

        Args:
            key: Full cache key
            value: Value to store
            ttl: Lifetime in seconds; None or 0 never expires

        Returns:
            False if ``key`` is new and the store is still full after purging
            expired entries
        """
        if key not in self._data and len(self._data) >= self.settings.max_keys:
            self.purge_expired()
            if len(self._data) >= self.settings.max_keys:
                logger.warning("Cache capacity reached, value not stored",
                               key=key, max_keys=self.settings.max_keys)
                return False

        self._data[key] = CacheEntry(
            key=key,
            value=value,
            created_at=self._clock(),
            ttl=ttl or 0,
            size_bytes=_estimate_size(value),
        )
        return True

    def set_with_class_ttl(self, key: str, value: Any, ttl_class: TTLClass) -> bool:
        """Store using one of the configured TTL classes.

        Args:
            key: Full cache key
            value: Value to store
            ttl_class: ``metadata``, ``structure`` or ``operation``

        Returns:
            Same as ``set``

        Raises:
            ValueError: If ``ttl_class`` is not a configured class
        """
        if ttl_class not in self._ttl_map:
            raise ValueError(f"Unknown TTL class: {ttl_class!r}")
        return self.set(key, value, self._ttl_map[ttl_class])

    def delete(self, key: str) -> int:
        return 1 if self._data.pop(key, None) is not None else 0

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def keys(self) -> list[str]:
        now = self._clock()
        return [key for key, entry in self._data.items() if not entry.expired(now)]

    def clear(self) -> None:
        self._data.clear()

    def flush_all(self) -> None:
        """Drop all entries and reset the hit/miss counters."""
        self._data.clear()
        self._hits = 0
        self._misses = 0

    def purge_expired(self) -> int:
        """Drop expired entries eagerly. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._data.items() if entry.expired(now)]
        for key in expired:
            del self._data[key]
        if expired:
            logger.debug("Expired cache keys purged", count=len(expired))
        return len(expired)

    @staticmethod
    def generate_key(namespace: str, *parts: str) -> str:
        return ":".join([namespace, *parts])

    def get_keys_by_pattern(self, pattern: Pattern) -> list[str]:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        return [key for key in self.keys() if regex.search(key)]

    def delete_keys_by_pattern(self, pattern: Pattern) -> int:
        """Delete every live key matching ``pattern``.

        Args:
            pattern: Compiled regex or pattern string, applied with ``search``

        Returns:
            Number of keys deleted
        """
        return sum(self.delete(key) for key in self.get_keys_by_pattern(pattern))

    def efficiency_ratio(self) -> float:
        total = self._hits + self._misses
        return 0.0 if total == 0 else self._hits / total

    def stats(self) -> CacheStats:
        now = self._clock()
        live = [entry for entry in self._data.values() if not entry.expired(now)]
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            keys=len(live),
            key_bytes=sum(len(entry.key) for entry in live),
            value_bytes=sum(entry.size_bytes for entry in live),
        )
