"""Cleanup strategies for the cache store.

The store keeps no access order, so there is no true LRU. Strategies instead
drop whole key families, starting with the ones cheapest to recompute.
Every strategy returns the number of entries removed.
"""

import math
import re
from collections.abc import Callable

import structlog

from .models import CacheStats
from .store import CacheStore, Pattern

logger = structlog.get_logger("cache.cleanup")

SWEEP_PATTERNS = (re.compile(r"^operation:"), re.compile(r"^metadata:"))
AGED_PATTERNS = (
    re.compile(r"^structure:outline:"),
    re.compile(r"^metadata:summary:"),
    re.compile(r"^operation:style:"),
)
DEFAULT_MATCH_PATTERN = re.compile(r"^(temp|debug|test):")


def memory_usage_ratio(stats: CacheStats, max_keys: int) -> float:
    """Approximate memory use against a budget of 1 KiB per allowed key, capped at 1."""
    budget = max_keys * 1024
    return min((stats.key_bytes + stats.value_bytes) / budget, 1.0)


def current_usage(store: CacheStore) -> float:
    return memory_usage_ratio(store.stats(), store.max_keys)


def pattern_sweep(store: CacheStore, threshold: float = 0.8) -> int:
    """Delete operation records, then fingerprints, until usage is at or under ``threshold``."""
    removed = 0
    for pattern in SWEEP_PATTERNS:
        removed += store.delete_keys_by_pattern(pattern)
        if current_usage(store) <= threshold:
            break
    return removed


def size_target(store: CacheStore, target_ratio: float = 0.5) -> int:
    """Delete the oldest-inserted share of keys needed to approach ``target_ratio``."""
    usage = current_usage(store)
    if usage <= target_ratio:
        return 0

    keys = store.keys()
    to_remove = math.floor(len(keys) * (usage - target_ratio) / usage)
    return sum(store.delete(key) for key in keys[:to_remove])


def age_sweep(store: CacheStore) -> int:
    """Delete the key families that are most likely to be old."""
    return sum(store.delete_keys_by_pattern(pattern) for pattern in AGED_PATTERNS)


def pattern_match(store: CacheStore, pattern: Pattern | None = None) -> int:
    return store.delete_keys_by_pattern(pattern or DEFAULT_MATCH_PATTERN)


STRATEGIES: dict[str, Callable[..., int]] = {
    "pattern-sweep": pattern_sweep,
    "size-target": size_target,
    "age-sweep": age_sweep,
    "pattern-match": pattern_match,
}


def perform_cleanup(store: CacheStore, strategy: str = "pattern-sweep", **options) -> int:
    """Run a named strategy; unknown names raise ``ValueError``."""
    try:
        func = STRATEGIES[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown cleanup strategy: {strategy!r} (expected one of {', '.join(STRATEGIES)})"
        ) from None

    removed = func(store, **options)
    logger.info("Cache cleanup completed", strategy=strategy, removed=removed)
    return removed
