"""Per-workspace wiring of the shared cache store.

One ``CacheStore`` is created per process and passed in; everything built
here is a thin view over it for a single workspace root.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from ..analysis.outline import ProjectOutlineGenerator
from ..cache.compile_cache import CompileCheckCache
from ..cache.domain import CommandRunner
from ..cache.fingerprint import FingerprintService
from ..cache.monitor import CacheMonitor
from ..cache.operation_cache import OperationCache
from ..cache.resources import ResourceProjector
from ..cache.store import CacheStore
from ..cache.style_cache import StyleCheckCache
from ..cache.test_cache import TestRunCache
from ..config import (
    CheckerSettings,
    McpCacheConfig,
    MonitorSettings,
    WatcherSettings,
)
from ..tracking.change_tracker import ChangeTracker
from ..tracking.file_watcher import FileWatcher
from ..utils.discovery import discover_files
from ..utils.process import run_command

logger = structlog.get_logger("services.workspace_cache")

WARMUP_PATTERNS = ("**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx", "package.json", "tsconfig.*")


class WorkspaceCache:
    """Domain caches, resources, monitor and file watching for one workspace."""

    def __init__(
        self,
        workspace_root: str,
        store: CacheStore,
        config: McpCacheConfig | None = None,
        runner: CommandRunner = run_command,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if config is not None:
            self.cache_settings = config.cache_settings()
            self.monitor_settings = config.monitor_settings()
            self.checker_settings = config.checker_settings()
            self.watcher_settings = config.watcher_settings()
        else:
            self.cache_settings = store.settings
            self.monitor_settings = MonitorSettings()
            self.checker_settings = CheckerSettings()
            self.watcher_settings = WatcherSettings()

        self.workspace_root = workspace_root
        self.store = store
        self._sleep = sleep
        self.fingerprints = FingerprintService(store, self.cache_settings.large_file_threshold_bytes)
        self.operations = OperationCache(store, self.fingerprints)

        domain_args = (store, self.fingerprints, workspace_root, self.checker_settings, runner)
        self.compile = CompileCheckCache(*domain_args)
        self.style = StyleCheckCache(*domain_args)
        self.tests = TestRunCache(*domain_args)

        self.outline = ProjectOutlineGenerator(store, workspace_root)
        self.resources = ResourceProjector(
            store, self.fingerprints, self.compile, self.style, self.tests, self.outline
        )
        self.monitor = CacheMonitor(store, self.monitor_settings, clock=clock, sleep=sleep)
        self.tracker = ChangeTracker()
        self.watcher = FileWatcher(workspace_root, self.watcher_settings)
        self.watcher.on_change(self.handle_file_change)

        self._expiry_task: asyncio.Task | None = None
        self._expiry_running = False

    def handle_file_change(self, path: str) -> int:
        """Record a changed file and drop every cached result that depended on it."""
        self.tracker.mark_dirty(path)
        invalidated = self.operations.invalidate_by_paths([path])
        logger.debug("File change handled", path=path, invalidated=invalidated)
        return invalidated

    async def warm(self, paths: list[str] | None = None) -> int:
        """Precompute fingerprints for ``paths`` or the workspace's source files."""
        if paths is None:
            paths = discover_files(self.workspace_root, WARMUP_PATTERNS)
        warmed = await self.fingerprints.warm_batch(paths, batch_size=self.cache_settings.warmup_batch_size)
        logger.info("Cache warmed", files=warmed)
        return warmed

    async def _expiry_loop(self):
        while self._expiry_running:
            try:
                await self._sleep(self.cache_settings.check_period_s)
                self.store.purge_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Cache expiry sweep error", error=str(e))

    async def start(self, watch: bool = True) -> None:
        """Start file watching, the expiry sweep and whichever monitor loops are enabled."""
        if watch:
            self.watcher.start()
        if not self._expiry_running:
            self._expiry_running = True
            self._expiry_task = asyncio.create_task(self._expiry_loop())
        if self.monitor_settings.enable_monitoring:
            self.monitor.start_monitoring()
        if self.monitor_settings.enable_auto_cleanup:
            self.monitor.start_auto_cleanup()

    async def close(self) -> None:
        self.watcher.stop()
        await self.monitor.dispose()
        self._expiry_running = False
        if self._expiry_task is not None and not self._expiry_task.done():
            self._expiry_task.cancel()
            try:
                await self._expiry_task
            except asyncio.CancelledError:
                pass
        self._expiry_task = None

    def stats(self) -> dict[str, Any]:
        return {
            "store": self.store.stats(),
            "efficiency": self.store.efficiency_ratio(),
            "operations": self.operations.summary(),
            "health": self.monitor.health(),
            "changes": self.tracker.status(),
        }
