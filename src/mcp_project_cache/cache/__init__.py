"""Operation-result caching.

Key Components:
- CacheStore: namespaced in-memory store with TTL classes and pattern sweeps
- FingerprintService: content hashes that decide whether an input changed
- OperationCache: binds a result to the fingerprints of the files behind it
- CompileCheckCache / StyleCheckCache / TestRunCache: checker-specific caches
- ResourceProjector: versioned read-only views of cached results
- CacheMonitor: health sampling and automatic cleanup

Usage Example:
    ```python
    store = CacheStore(CacheSettings(max_keys=2000))
    fingerprints = FingerprintService(store)
    compile_cache = CompileCheckCache(store, fingerprints, "/path/to/project")

    record = await compile_cache.check()     # runs the compiler
    record = await compile_cache.check()     # served from cache

    OperationCache(store, fingerprints).invalidate_by_paths(["/path/to/project/src/app.ts"])
    ```
"""

from .models import (
    CompileCheckRecord,
    Diagnostic,
    Fingerprint,
    HealthSnapshot,
    OperationRecord,
    ResourceSnapshot,
    StyleCheckRecord,
    TestRunRecord,
)
from .store import CacheStore
from .fingerprint import FingerprintService
from .operation_cache import OperationCache
from .compile_cache import CompileCheckCache
from .style_cache import StyleCheckCache
from .test_cache import TestRunCache
from .monitor import CacheMonitor
from .resources import ResourceProjector

__all__ = [
    "CacheMonitor",
    "CacheStore",
    "CompileCheckCache",
    "CompileCheckRecord",
    "Diagnostic",
    "Fingerprint",
    "FingerprintService",
    "HealthSnapshot",
    "OperationCache",
    "OperationRecord",
    "ResourceProjector",
    "ResourceSnapshot",
    "StyleCheckCache",
    "StyleCheckRecord",
    "TestRunCache",
    "TestRunRecord",
]
