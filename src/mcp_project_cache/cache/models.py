"""Data models for the operation-result cache.

Fingerprints and operation records are stored as values inside the cache
store; health snapshots and resource snapshots are produced on read for the
presentation layer.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

Severity = Literal["error", "warning", "info"]
ChangeReason = Literal["content", "new", "missing"]
HealthStatus = Literal["healthy", "warning", "critical"]
OperationType = Literal["compile", "style", "test"]
TTLClass = Literal["metadata", "structure", "operation"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Fingerprint(BaseModel):
    """Content fingerprint of a single file."""
    path: str
    size_bytes: int = 0
    modified_at: datetime = datetime.fromtimestamp(0, tz=timezone.utc)
    content_hash: str = ""
    exists: bool = False

    @classmethod
    def not_found(cls, path: str) -> "Fingerprint":
        return cls(path=path)


class FileChange(BaseModel):
    """Comparison of one file against its expected hash."""
    path: str
    changed: bool = False
    reason: ChangeReason | None = None
    old_hash: str | None = None
    new_hash: str | None = None


class BatchChangeResult(BaseModel):
    changed: list[FileChange] = Field(default_factory=list)
    total_checked: int = 0
    changed_count: int = 0


class Diagnostic(BaseModel):
    """A single compiler or style-checker finding."""
    file: str | None = None
    line: int | None = None
    column: int | None = None
    rule: str | None = None
    message: str
    severity: Severity = "error"


class OperationRecord(BaseModel):
    """Outcome of an expensive file-dependent operation.

    ``file_fingerprints`` must hold every file that influenced ``raw_output``.
    A file missing from the map is never re-checked, so the record would
    outlive changes to it.
    """
    op_type: str
    success: bool
    raw_output: str = ""
    error: str | None = None
    produced_at: datetime = Field(default_factory=utcnow)
    file_fingerprints: dict[str, str] = Field(default_factory=dict)


class CompileCheckRecord(OperationRecord):
    op_type: Literal["compile"] = "compile"
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class StyleCheckRecord(OperationRecord):
    op_type: Literal["style"] = "style"
    file_path: str = ""
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class TestRunRecord(OperationRecord):
    __test__ = False  # not a pytest test class

    op_type: Literal["test"] = "test"
    test_files: list[str] = Field(default_factory=list)
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: int = 0


AnyOperationRecord = Annotated[
    Union[CompileCheckRecord, StyleCheckRecord, TestRunRecord],
    Field(discriminator="op_type"),
]

_record_adapter: TypeAdapter = TypeAdapter(AnyOperationRecord)


def parse_record(data: dict[str, Any]) -> OperationRecord:
    """Validate a serialized record into its ``op_type`` variant."""
    return _record_adapter.validate_python(data)


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    keys: int = 0
    key_bytes: int = 0
    value_bytes: int = 0


class HealthSnapshot(BaseModel):
    efficiency: float
    memory_usage_ratio: float
    key_count: int
    uptime_s: float
    status: HealthStatus
    recommendations: list[str] = Field(default_factory=list)
    sampled_at: datetime = Field(default_factory=utcnow)


class MonitoringSample(BaseModel):
    sampled_at: datetime = Field(default_factory=utcnow)
    stats: CacheStats
    health: HealthSnapshot
    memory_usage_bytes: int = 0
    operations_per_second: float = 0.0


class ResourceSnapshot(BaseModel):
    """Versioned, externally addressable view of cache contents."""
    uri: str
    version: str
    last_updated: datetime
    cache_key: str
    data: Any = None
    note: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready form with an ISO-8601 ``last_updated``."""
        return self.model_dump(mode="json")
