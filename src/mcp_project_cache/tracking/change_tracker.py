"""Versioned record of which files changed since the last refresh."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..cache.models import utcnow

HISTORY_LIMIT = 1000


@dataclass
class ChangeEntry:
    file: str
    version: int
    timestamp: datetime = field(default_factory=utcnow)


class ChangeTracker:
    """Dirty-file set plus a bounded change history.

    ``refresh`` hands the dirty set to the caller, clears it and bumps the
    version, so callers can ask for changes since a version they saw.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self.version = 1
        self.last_scan = utcnow()
        self._history_limit = history_limit
        self._dirty: dict[str, None] = {}
        self._history: list[ChangeEntry] = []

    def mark_dirty(self, file: str) -> None:
        self._dirty[file] = None
        self._history.append(ChangeEntry(file=file, version=self.version))
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit:]

    def changed_files(self) -> list[str]:
        return list(self._dirty)

    def refresh(self) -> dict[str, Any]:
        result = {
            "changed_files": list(self._dirty),
            "cleared": len(self._dirty),
            "previous_version": self.version,
        }
        self._dirty.clear()
        self.version += 1
        self.last_scan = utcnow()
        return result

    def status(self) -> dict[str, Any]:
        return {
            "dirty": bool(self._dirty),
            "version": self.version,
            "last_scan": self.last_scan,
            "changed_files": list(self._dirty),
        }

    @staticmethod
    def _unique_files(entries: list[ChangeEntry]) -> list[str]:
        return list(dict.fromkeys(entry.file for entry in entries))

    def changes_since(self, timestamp: datetime) -> list[str]:
        return self._unique_files([e for e in self._history if e.timestamp > timestamp])

    def changes_since_version(self, version: int) -> list[str]:
        """Files marked dirty while the tracker was at a version newer than ``version``."""
        return self._unique_files([e for e in self._history if e.version > version])

    def history(self) -> list[ChangeEntry]:
        return list(self._history)
