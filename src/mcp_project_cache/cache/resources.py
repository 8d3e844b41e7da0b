"""Versioned read-only views over cache contents.

Operation views (``cache://<type>-results``) expose the latest compile, style
or test records. Metadata views (``metadata://fingerprints``,
``metadata://structure``) are built on demand and kept under
``resource:<kind>`` for the structure TTL.
"""

import hashlib
from datetime import datetime, timezone
from typing import Any

import structlog

from ..analysis.outline import SOURCE_FILE_TYPES, OutlineOptions, ProjectOutlineGenerator
from .compile_cache import CompileCheckCache
from .fingerprint import FingerprintService
from .models import ResourceSnapshot, utcnow
from .store import CacheStore
from .style_cache import StyleCheckCache
from .test_cache import TestRunCache

logger = structlog.get_logger("cache.resources")

OPERATION_VIEWS = ("compile", "style", "test")
METADATA_VIEWS = ("fingerprints", "structure")
STYLE_SAMPLE_SIZE = 10
SUMMARY_STYLE_SAMPLE_SIZE = 5
COLD_NOTE = "no cached data yet"


def resource_version(timestamp: datetime, kind: str) -> str:
    """``<kind>-`` plus eight hex digits derived from the timestamp."""
    millis = int(timestamp.timestamp() * 1000)
    digest = hashlib.md5(f"{millis}-{kind}".encode()).hexdigest()
    return f"{kind}-{digest[:8]}"


def view_uri(name: str) -> str:
    if name in OPERATION_VIEWS:
        return f"cache://{name}-results"
    return f"metadata://{name}"


def view_name(uri: str) -> str:
    """Inverse of ``view_uri``; bare names pass through."""
    _, _, rest = uri.rpartition("://")
    return rest.removesuffix("-results")


class ResourceProjector:
    """Builds ``ResourceSnapshot`` views for an external presentation layer."""

    def __init__(
        self,
        store: CacheStore,
        fingerprints: FingerprintService,
        compile_cache: CompileCheckCache,
        style_cache: StyleCheckCache,
        test_cache: TestRunCache,
        outline: ProjectOutlineGenerator,
    ):
        self.store = store
        self.fingerprints = fingerprints
        self.compile_cache = compile_cache
        self.style_cache = style_cache
        self.test_cache = test_cache
        self.outline = outline

    def _key(self, name: str) -> str:
        return self.store.generate_key("resource", name)

    async def _latest_operation_data(self, op_type: str) -> tuple[Any, datetime | None]:
        if op_type == "compile":
            record = self.compile_cache.operations.get_raw("compile", await self.compile_cache.current_key())
            return record, record.produced_at if record else None

        if op_type == "test":
            record = self.test_cache.operations.get_raw("test", await self.test_cache.current_key())
            return record, record.produced_at if record else None

        sample = (await self.style_cache.discover_sources())[:STYLE_SAMPLE_SIZE]
        records = [r for r in await self.style_cache.get_cached_results(sample) if r is not None]
        if not records:
            return None, None
        return records, max(r.produced_at for r in records)

    async def project_operation_view(self, op_type: str) -> ResourceSnapshot:
        """Latest results of one operation type; a cold or failing read yields ``data=None``."""
        if op_type not in OPERATION_VIEWS:
            raise ValueError(f"Unknown operation view: {op_type!r}")

        key = self._key(op_type)
        try:
            data, produced_at = await self._latest_operation_data(op_type)
        except Exception as e:
            logger.warning("Failed to project operation view", op_type=op_type, error=str(e))
            return self._cold(op_type, key, note=f"unavailable: {e}")

        if data is None:
            return self._cold(op_type, key)

        snapshot = ResourceSnapshot(
            uri=view_uri(op_type),
            version=resource_version(produced_at, op_type),
            last_updated=produced_at,
            cache_key=key,
            data=data,
        )
        self.store.set_with_class_ttl(key, snapshot, "metadata")
        return snapshot

    def _cold(self, name: str, key: str, note: str = COLD_NOTE) -> ResourceSnapshot:
        now = utcnow()
        return ResourceSnapshot(
            uri=view_uri(name),
            version=resource_version(now, name),
            last_updated=now,
            cache_key=key,
            data=None,
            note=note,
        )

    async def project_metadata_view(self, kind: str) -> ResourceSnapshot:
        """Point-in-time fingerprint table or depth-3 outline, reused within the structure TTL."""
        if kind not in METADATA_VIEWS:
            raise ValueError(f"Unknown metadata view: {kind!r}")

        key = self._key(kind)
        cached = self.store.get(key)
        if isinstance(cached, ResourceSnapshot):
            return cached

        if kind == "fingerprints":
            data = await self._fingerprint_table()
        else:
            data = await self._structure()

        now = utcnow()
        snapshot = ResourceSnapshot(
            uri=view_uri(kind),
            version=resource_version(now, kind),
            last_updated=now,
            cache_key=key,
            data=data,
        )
        self.store.set_with_class_ttl(key, snapshot, "structure")
        return snapshot

    async def _fingerprint_table(self) -> dict[str, Any]:
        outline = await self.outline.get_outline()
        paths = [node.path for node in outline.iter_files() if node.file_type in SOURCE_FILE_TYPES]
        fingerprints = await self.fingerprints.get_batch(paths)

        files = {
            fp.path: {
                "hash": fp.content_hash,
                "size": fp.size_bytes,
                "modified_at": fp.modified_at.isoformat(),
            }
            for fp in fingerprints
            if fp.exists
        }
        return {"files": files, "total_files": len(paths)}

    async def _structure(self) -> dict[str, Any]:
        outline = await self.outline.get_outline(OutlineOptions(max_depth=3))
        return {
            "structure": outline.structure.model_dump(mode="json"),
            "stats": outline.stats.model_dump(mode="json"),
            "version": resource_version(outline.generated_at, "structure"),
        }

    def resource_version(self, uri: str) -> str:
        cached = self.store.peek(self._key(view_name(uri)))
        return cached.version if isinstance(cached, ResourceSnapshot) else "unknown"

    def is_stale(self, uri: str, max_age_s: float = 300) -> bool:
        cached = self.store.peek(self._key(view_name(uri)))
        if not isinstance(cached, ResourceSnapshot):
            return True
        age = (datetime.now(timezone.utc) - cached.last_updated).total_seconds()
        return age > max_age_s

    async def summary(self) -> dict[str, dict[str, Any]]:
        """Last run, outcome, counts and version per operation type with valid cached data."""
        summary: dict[str, dict[str, Any]] = {}

        compile_record = await self.compile_cache.get_cached()
        if compile_record is not None:
            summary["compile"] = {
                "last_run": compile_record.produced_at,
                "success": compile_record.success,
                "issue_count": len(compile_record.diagnostics),
                "version": resource_version(compile_record.produced_at, "compile"),
            }

        sample = (await self.style_cache.discover_sources())[:SUMMARY_STYLE_SAMPLE_SIZE]
        style_records = [r for r in await self.style_cache.get_cached_results(sample) if r is not None]
        if style_records:
            latest = max(r.produced_at for r in style_records)
            summary["style"] = {
                "last_run": latest,
                "success": all(r.success for r in style_records),
                "total_files": len(style_records),
                "issue_count": sum(len(r.diagnostics) for r in style_records),
                "version": resource_version(latest, "style"),
            }

        test_record = await self.test_cache.get_cached()
        if test_record is not None:
            summary["test"] = {
                "last_run": test_record.produced_at,
                "success": test_record.success,
                "total_tests": test_record.passed + test_record.failed + test_record.skipped,
                "passed": test_record.passed,
                "failed": test_record.failed,
                "version": resource_version(test_record.produced_at, "test"),
            }

        return summary

    def clear(self, uri: str | None = None) -> int:
        if uri is not None:
            return self.store.delete(self._key(view_name(uri)))
        return self.store.delete_keys_by_pattern(r"^resource:")
