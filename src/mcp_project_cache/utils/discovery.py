"""Glob-based discovery of a workspace's input files."""

import fnmatch
import os
from collections.abc import Iterable
from pathlib import Path

DEFAULT_EXCLUDES = (
    "node_modules/**",
    "dist/**",
    "build/**",
    "coverage/**",
    ".git/**",
)

_PRUNED_DIRS = {"node_modules", ".git", "__pycache__", ".venv", "venv"}


def matches_any(relative_path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatch(relative_path, pattern):
            return True
        # "**/x" also matches "x" at the workspace root
        if pattern.startswith("**/") and fnmatch.fnmatch(relative_path, pattern[3:]):
            return True
        # "dir/**" excludes the directory at any depth
        if pattern.endswith("/**"):
            prefix = pattern[:-3]
            if relative_path.startswith(prefix + "/") or f"/{prefix}/" in f"/{relative_path}":
                return True
    return False


def discover_files(
    root: str | Path,
    include: Iterable[str],
    exclude: Iterable[str] = DEFAULT_EXCLUDES,
) -> list[str]:
    """Absolute paths under ``root`` matching ``include`` and not ``exclude``.

    Results are sorted so repeated discovery of an unchanged tree is stable.
    """
    root = Path(root).resolve()
    include = list(include)
    exclude = list(exclude)
    found: list[str] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in _PRUNED_DIRS]
        for filename in filenames:
            full_path = Path(dirpath) / filename
            relative = full_path.relative_to(root).as_posix()
            if matches_any(relative, include) and not matches_any(relative, exclude):
                found.append(str(full_path))

    return sorted(found)
