"""Generic cache for expensive file-dependent operations.

A record is trustworthy exactly as long as every file in its
``file_fingerprints`` still exists with the recorded hash. Two paths keep
that true: ``is_valid`` checks lazily on read, and ``invalidate_by_paths``
eagerly drops records when file-change events arrive.
"""

import os
from collections.abc import Iterable

import structlog
from pydantic import ValidationError

from .fingerprint import FingerprintService
from .models import BatchChangeResult, OperationRecord, parse_record
from .store import CacheStore

logger = structlog.get_logger("cache.operation")


class OperationCache:
    """Stores operation records under ``operation:<op_type>:<key>``."""

    def __init__(self, store: CacheStore, fingerprints: FingerprintService):
        self.store = store
        self.fingerprints = fingerprints

    def _key(self, op_type: str, key: str) -> str:
        return self.store.generate_key("operation", op_type, key)

    def put(self, op_type: str, key: str, record: OperationRecord) -> bool:
        """Store a record under ``operation:<op_type>:<key>`` with the operation TTL.

        Args:
            op_type: Operation type (``compile``, ``style`` or ``test``)
            key: Operation key built from the record's inputs
            record: Result to cache; its ``file_fingerprints`` decide validity

        Returns:
            False when the store is at capacity and the record was not kept
        """
        stored = self.store.set_with_class_ttl(self._key(op_type, key), record, "operation")
        logger.debug("Operation result cached", op_type=op_type, key=key,
                     files=len(record.file_fingerprints), stored=stored)
        return stored

    def get_raw(self, op_type: str, key: str) -> OperationRecord | None:
        """Last stored record for the key, without any freshness check.

        Records stored in serialized form (``model_dump(mode="json")``) are
        validated back into their ``op_type`` variant.

        Args:
            op_type: Operation type
            key: Operation key

        Returns:
            The stored record, or None when absent or not a valid record
        """
        value = self.store.get(self._key(op_type, key))
        if isinstance(value, dict):
            try:
                return parse_record(value)
            except ValidationError as e:
                logger.warning("Discarding malformed cached operation",
                               op_type=op_type, key=key, error=str(e))
                return None
        return value

    async def check(self, record: OperationRecord) -> BatchChangeResult:
        """Compare every fingerprint the record depends on with the disk."""
        return await self.fingerprints.compare_with_expected(record.file_fingerprints)

    async def is_valid(self, record: OperationRecord | None) -> bool:
        """Check that every file the record depends on still has its recorded hash.

        Args:
            record: Record returned by ``get_raw``

        Returns:
            True only for an ``OperationRecord`` whose fingerprints all match the disk
        """
        if not isinstance(record, OperationRecord) or record.file_fingerprints is None:
            return False
        try:
            result = await self.check(record)
        except Exception as e:
            logger.warning("Failed to validate cached operation",
                           op_type=getattr(record, "op_type", None), error=str(e))
            return False

        if result.changed_count:
            logger.debug("Cached operation is stale",
                         op_type=record.op_type,
                         changed=[(change.path, change.reason) for change in result.changed])
        return result.changed_count == 0

    @staticmethod
    def build_key(files: Iterable[str], config_files: Iterable[str] = ()) -> str:
        """Order-independent key over the set of relevant paths."""
        names = sorted(os.path.basename(path) for path in [*files, *config_files])
        return ",".join(names)

    def invalidate_by_paths(self, changed_paths: Iterable[str]) -> int:
        """Delete every operation record that depends on a changed path.

        Also drops the cached fingerprints of the changed paths.

        Args:
            changed_paths: Paths reported changed, relative or absolute

        Returns:
            Number of operation records removed
        """
        changed = {os.path.abspath(path) for path in changed_paths}
        if not changed:
            return 0

        for path in changed:
            self.fingerprints.clear(path)

        invalidated = 0
        for cache_key in self.store.get_keys_by_pattern(r"^operation:"):
            record = self.store.peek(cache_key)
            if isinstance(record, dict):
                fingerprints = record.get("file_fingerprints") or {}
            else:
                fingerprints = getattr(record, "file_fingerprints", None) or {}
            if any(os.path.abspath(path) in changed for path in fingerprints):
                invalidated += self.store.delete(cache_key)

        logger.info("Operations invalidated by file changes",
                    changed_files=len(changed), invalidated=invalidated)
        return invalidated

    def clear_type(self, op_type: str) -> int:
        return self.store.delete_keys_by_pattern(rf"^operation:{op_type}:")

    def summary(self) -> dict[str, int]:
        """Count of cached records per operation type."""
        counts: dict[str, int] = {}
        for key in self.store.get_keys_by_pattern(r"^operation:"):
            parts = key.split(":")
            if len(parts) >= 2:
                counts[parts[1]] = counts.get(parts[1], 0) + 1
        return counts

    def type_stats(self, op_type: str) -> dict[str, int]:
        """Hits and misses attributed to ``op_type`` by its share of keys.

        The store only counts hits globally, so this is an approximation.
        """
        type_keys = len(self.store.get_keys_by_pattern(rf"^operation:{op_type}:"))
        stats = self.store.stats()
        share = type_keys / max(stats.keys, 1)
        return {
            "hits": round(stats.hits * share),
            "misses": round(stats.misses * share),
        }
