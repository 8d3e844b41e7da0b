"""File fingerprinting: the unit of "has this input changed".

Fingerprints are sha256 digests of file content. Files at or above the
large-file threshold get a ``large:<size>:<mtime_ms>`` proxy instead, which
trades precision (a same-size rewrite within one mtime tick goes unnoticed)
for not reading huge files.
"""

import asyncio
import hashlib
import os
from datetime import datetime, timezone
from typing import Any

import aiofiles
import aiofiles.os
import structlog

from .models import BatchChangeResult, FileChange, Fingerprint
from .store import CacheStore

logger = structlog.get_logger("cache.fingerprint")

UNHASHABLE = ""
_READ_CHUNK = 1024 * 1024


class FingerprintService:
    """Computes and caches file fingerprints under the ``metadata`` namespace."""

    def __init__(self, store: CacheStore, large_file_threshold: int | None = None):
        self.store = store
        self.large_file_threshold = (
            large_file_threshold
            if large_file_threshold is not None
            else store.settings.large_file_threshold_bytes
        )

    def _key(self, path: str) -> str:
        return self.store.generate_key("metadata", os.path.abspath(path))

    async def get(self, path: str) -> Fingerprint:
        """Return the cached fingerprint for ``path`` or compute a fresh one.

        A cached fingerprint is only reused while a fresh stat still reports
        the same existence, size and mtime; otherwise the file is re-hashed.
        """
        key = self._key(path)
        absolute_path = os.path.abspath(path)
        cached = self.store.get(key)
        if cached is not None and await self._still_current(absolute_path, cached):
            return cached

        fingerprint = await self._compute(absolute_path)
        self.store.set_with_class_ttl(key, fingerprint, "metadata")
        return fingerprint

    async def _still_current(self, absolute_path: str, cached: Fingerprint) -> bool:
        try:
            stat = await aiofiles.os.stat(absolute_path)
        except OSError:
            return not cached.exists
        return (
            cached.exists
            and cached.size_bytes == stat.st_size
            and cached.modified_at == datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        )

    async def get_batch(self, paths: list[str]) -> list[Fingerprint]:
        """Fingerprint every path; a failing path yields a not-found slot."""
        results = await asyncio.gather(
            *(self.get(path) for path in paths),
            return_exceptions=True,
        )

        fingerprints: list[Fingerprint] = []
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                logger.warning("Fingerprint failed", path=path, error=str(result))
                fingerprints.append(Fingerprint.not_found(path))
            else:
                fingerprints.append(result)
        return fingerprints

    async def compare_with_expected(self, expected: dict[str, str]) -> BatchChangeResult:
        """Classify each path against its previously recorded hash.

        Reasons: ``missing`` (file gone), ``new`` (no prior hash), ``content``
        (hash differs). The unhashable sentinel never counts as unchanged, so
        two empty hashes still report ``content``.
        """
        paths = list(expected)
        current = await self.get_batch(paths)

        changed: list[FileChange] = []
        for path, fingerprint in zip(paths, current):
            old_hash = expected[path]
            comparison = FileChange(path=path, old_hash=old_hash, new_hash=fingerprint.content_hash)

            if not fingerprint.exists:
                comparison.changed = True
                comparison.reason = "missing"
            elif not old_hash:
                comparison.changed = True
                comparison.reason = "new"
            elif fingerprint.content_hash == UNHASHABLE or fingerprint.content_hash != old_hash:
                comparison.changed = True
                comparison.reason = "content"

            if comparison.changed:
                changed.append(comparison)

        return BatchChangeResult(
            changed=changed,
            total_checked=len(paths),
            changed_count=len(changed),
        )

    async def hash(self, path: str) -> str:
        """sha256 of the file content, or ``""`` when it cannot be read."""
        try:
            digest = hashlib.sha256()
            async with aiofiles.open(os.path.abspath(path), "rb") as f:
                while chunk := await f.read(_READ_CHUNK):
                    digest.update(chunk)
            return digest.hexdigest()
        except OSError:
            return UNHASHABLE

    async def validate_unchanged(self, path: str, expected_hash: str) -> bool:
        current = await self.hash(path)
        return current != UNHASHABLE and current == expected_hash

    async def quick_stats(self, path: str) -> dict[str, Any]:
        """Existence, size and mtime without hashing."""
        try:
            stat = await aiofiles.os.stat(os.path.abspath(path))
            return {
                "exists": True,
                "size": stat.st_size,
                "mtime": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            }
        except OSError:
            return {
                "exists": False,
                "size": 0,
                "mtime": datetime.fromtimestamp(0, tz=timezone.utc),
            }

    def clear(self, path: str | None = None) -> int:
        """Drop the cached fingerprint for ``path``, or all of them."""
        if path is not None:
            return self.store.delete(self._key(path))
        return self.store.delete_keys_by_pattern(r"^metadata:")

    async def warm_batch(self, paths: list[str], batch_size: int = 10) -> int:
        """Pre-compute fingerprints in fixed-size batches.

        Returns the number of fingerprints that were computed successfully.
        """
        warmed = 0
        for start in range(0, len(paths), batch_size):
            batch = paths[start:start + batch_size]
            results = await asyncio.gather(
                *(self.get(path) for path in batch),
                return_exceptions=True,
            )
            warmed += sum(1 for result in results if not isinstance(result, BaseException))

        logger.debug("Fingerprint cache warmed", requested=len(paths), warmed=warmed)
        return warmed

    async def _compute(self, absolute_path: str) -> Fingerprint:
        try:
            stat = await aiofiles.os.stat(absolute_path)
        except OSError:
            return Fingerprint.not_found(absolute_path)

        if stat.st_size < self.large_file_threshold:
            content_hash = await self.hash(absolute_path)
        else:
            content_hash = f"large:{stat.st_size}:{int(stat.st_mtime * 1000)}"

        if content_hash == UNHASHABLE:
            # stat succeeded but the content could not be read
            return Fingerprint.not_found(absolute_path)

        return Fingerprint(
            path=absolute_path,
            size_bytes=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            content_hash=content_hash,
            exists=True,
        )
