"""Filesystem watching that feeds changed paths to the cache.

watchdog delivers events on its observer thread; they are handed to the
asyncio loop with ``call_soon_threadsafe`` and debounced there per path.
"""

import asyncio
import fnmatch
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..config import WatcherSettings

logger = structlog.get_logger("tracking.file_watcher")

ChangeCallback = Callable[[str], Awaitable[Any] | Any]


class FileWatcher:
    """Watches a workspace and reports changed files matching the watch patterns."""

    def __init__(self, workspace_root: str, settings: WatcherSettings | None = None):
        self.workspace_root = Path(workspace_root).resolve()
        self.settings = settings or WatcherSettings()
        self._callbacks: list[ChangeCallback] = []
        self._observer: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: dict[str, asyncio.TimerHandle] = {}
        self._dispatching: set[asyncio.Task] = set()

    @property
    def watching(self) -> bool:
        return self._observer is not None

    def on_change(self, callback: ChangeCallback) -> None:
        """Register a sync or async callback receiving the absolute changed path."""
        self._callbacks.append(callback)

    def should_track(self, path: str) -> bool:
        absolute = Path(path).resolve()
        try:
            relative = absolute.relative_to(self.workspace_root)
        except ValueError:
            return False

        if any(part in self.settings.ignored_patterns for part in relative.parts):
            return False
        relative_str = relative.as_posix()
        return any(
            fnmatch.fnmatch(absolute.name, pattern) or fnmatch.fnmatch(relative_str, pattern)
            for pattern in self.settings.watch_patterns
        )

    def start(self) -> bool:
        """Begin watching; must be called from the event loop that receives callbacks."""
        if self.watching:
            return True

        self._loop = asyncio.get_running_loop()
        try:
            observer = Observer()
            observer.schedule(_ChangeEventHandler(self), str(self.workspace_root), recursive=True)
            observer.start()
        except OSError as e:
            logger.error("Failed to start file watching", path=str(self.workspace_root), error=str(e))
            return False

        self._observer = observer
        logger.info("Started file watching", path=str(self.workspace_root))
        return True

    def stop(self) -> None:
        """Stop the observer and cancel pending and in-flight change dispatches."""
        if not self.watching:
            return
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        for task in self._dispatching:
            task.cancel()
        self._dispatching.clear()

        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("Stopped file watching", path=str(self.workspace_root))

    def notify(self, path: str) -> None:
        """Thread-safe entry point for raw filesystem events."""
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._schedule, path)

    def _schedule(self, path: str) -> None:
        if not self.should_track(path):
            return
        absolute = os.path.abspath(path)
        pending = self._pending.pop(absolute, None)
        if pending is not None:
            pending.cancel()
        self._pending[absolute] = self._loop.call_later(
            self.settings.debounce_s, self._fire, absolute
        )

    def _fire(self, path: str) -> None:
        self._pending.pop(path, None)
        task = self._loop.create_task(self.dispatch(path))
        self._dispatching.add(task)
        task.add_done_callback(self._dispatching.discard)

    async def dispatch(self, path: str) -> None:
        """Deliver one change to every callback; a failing callback does not stop the others."""
        for callback in self._callbacks:
            try:
                result = callback(path)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("File change callback failed", path=path, error=str(e))


class _ChangeEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed", "closed_no_write"):
            return
        self.watcher.notify(os.fsdecode(event.src_path))
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            self.watcher.notify(os.fsdecode(dest_path))
