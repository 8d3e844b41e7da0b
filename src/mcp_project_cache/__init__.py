"""Operation-result cache for MCP project tooling.

Remembers the outcome of expensive, file-dependent operations (compile
checks, style checks, test runs, fingerprints, project outlines) and discards
each result as soon as a file it depended on changes.
"""

__version__ = "0.1.0"

from .cache import CacheMonitor, CacheStore, FingerprintService, OperationCache
from .config import McpCacheConfig, get_config
from .services.workspace_cache import WorkspaceCache

__all__ = [
    "CacheMonitor",
    "CacheStore",
    "FingerprintService",
    "McpCacheConfig",
    "OperationCache",
    "WorkspaceCache",
    "get_config",
]
