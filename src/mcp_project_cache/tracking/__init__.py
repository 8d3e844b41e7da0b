"""File change tracking feeding cache invalidation."""

from .change_tracker import ChangeTracker
from .file_watcher import FileWatcher

__all__ = ["ChangeTracker", "FileWatcher"]
