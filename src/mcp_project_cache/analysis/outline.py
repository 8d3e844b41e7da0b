"""Project structure outline without reading file contents.

Outlines are cached under ``structure:outline:<options>`` with the
structure TTL.
"""

import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Literal

import aiofiles.os
import structlog
from pydantic import BaseModel, Field

from ..cache.models import utcnow
from ..cache.store import CacheStore
from ..utils.discovery import matches_any

logger = structlog.get_logger("analysis.outline")

OUTLINE_MAX_AGE = timedelta(minutes=5)

SOURCE_FILE_TYPES = {"typescript", "javascript", "tsx", "jsx", "config", "data"}


class OutlineOptions(BaseModel):
    max_depth: int = 10
    exclude_patterns: list[str] = Field(
        default_factory=lambda: ["node_modules/**", "dist/**", "build/**", ".git/**"]
    )
    include_hidden: bool = False
    include_sizes: bool = True


class OutlineNode(BaseModel):
    name: str
    type: Literal["directory", "file"]
    path: str
    file_type: str | None = None
    size: int | None = None
    children: list["OutlineNode"] | None = None


class ProjectStats(BaseModel):
    total_files: int = 0
    total_directories: int = 0
    total_size: int = 0
    files_by_extension: dict[str, int] = Field(default_factory=dict)
    largest_files: list[dict[str, int | str]] = Field(default_factory=list)


class ProjectOutline(BaseModel):
    structure: OutlineNode
    stats: ProjectStats
    file_types: dict[str, int] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=utcnow)

    def iter_files(self):
        """Depth-first walk over every file node."""
        stack = [self.structure]
        while stack:
            node = stack.pop()
            if node.type == "file":
                yield node
            stack.extend(reversed(node.children or []))


def classify_file_type(file_path: str) -> str:
    """Coarse file category from extension and name."""
    name = os.path.basename(file_path).lower()
    ext = os.path.splitext(name)[1]
    posix = file_path.replace(os.sep, "/")

    by_extension = {".ts": "typescript", ".tsx": "tsx", ".js": "javascript", ".jsx": "jsx"}
    if ext in by_extension:
        return by_extension[ext]
    if ".test." in name or ".spec." in name or "/test/" in posix or "/tests/" in posix:
        return "test"
    if name.startswith(".") or "config" in name or "rc" in name or name in {"package.json", "tsconfig.json"}:
        return "config"
    if ext in {".md", ".txt", ".rst", ".doc", ".docx"} or "readme" in name or "changelog" in name:
        return "documentation"
    if ext in {".css", ".scss", ".sass", ".less", ".styl"}:
        return "style"
    if ext in {".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".ico", ".woff", ".woff2", ".ttf", ".eot"}:
        return "asset"
    if ext in {".json", ".xml", ".yml", ".yaml", ".csv", ".sql"}:
        return "data"
    if "/dist/" in posix or "/build/" in posix or ext == ".map" or name.endswith((".min.js", ".min.css")):
        return "build"
    return "other"


class ProjectOutlineGenerator:
    """Builds and caches a depth-limited directory tree of a workspace."""

    def __init__(self, store: CacheStore, workspace_root: str):
        self.store = store
        self.workspace_root = os.path.abspath(workspace_root)

    def cache_key(self, options: OutlineOptions) -> str:
        return self.store.generate_key(
            "structure",
            "outline",
            str(options.max_depth),
            ",".join(options.exclude_patterns),
            "hidden" if options.include_hidden else "nohidden",
            "sizes" if options.include_sizes else "nosizes",
        )

    async def get_outline(self, options: OutlineOptions | None = None) -> ProjectOutline:
        options = options or OutlineOptions()
        key = self.cache_key(options)

        cached = self.store.get(key)
        if isinstance(cached, ProjectOutline) and utcnow() - cached.generated_at < OUTLINE_MAX_AGE:
            return cached

        outline = await self._generate(options)
        self.store.set_with_class_ttl(key, outline, "structure")
        logger.debug("Project outline generated",
                     files=outline.stats.total_files,
                     directories=outline.stats.total_directories)
        return outline

    def _walk(self, options: OutlineOptions) -> list[tuple[str, bool]]:
        """``(absolute path, is_directory)`` entries within ``max_depth``."""
        root = Path(self.workspace_root)
        entries: list[tuple[str, bool]] = []

        for dirpath, dirnames, filenames in os.walk(root):
            relative_dir = Path(dirpath).relative_to(root)
            depth = 0 if str(relative_dir) == "." else len(relative_dir.parts)

            kept_dirs = []
            for dirname in sorted(dirnames):
                relative = (relative_dir / dirname).as_posix()
                if not options.include_hidden and dirname.startswith("."):
                    continue
                if matches_any(relative + "/", options.exclude_patterns) or matches_any(relative, options.exclude_patterns):
                    continue
                if depth + 1 <= options.max_depth:
                    entries.append((os.path.join(dirpath, dirname), True))
                if depth + 1 < options.max_depth:
                    kept_dirs.append(dirname)
            dirnames[:] = kept_dirs

            if depth + 1 > options.max_depth:
                continue
            for filename in sorted(filenames):
                if not options.include_hidden and filename.startswith("."):
                    continue
                relative = (relative_dir / filename).as_posix()
                if matches_any(relative, options.exclude_patterns):
                    continue
                entries.append((os.path.join(dirpath, filename), False))

        return entries

    async def _size(self, path: str) -> int | None:
        try:
            return (await aiofiles.os.stat(path)).st_size
        except OSError:
            return None

    async def _generate(self, options: OutlineOptions) -> ProjectOutline:
        entries = self._walk(options)

        root = OutlineNode(
            name=os.path.basename(self.workspace_root),
            type="directory",
            path=self.workspace_root,
            children=[],
        )
        nodes: dict[str, OutlineNode] = {self.workspace_root: root}
        stats = ProjectStats()
        file_types: dict[str, int] = {}
        sizes: list[dict[str, int | str]] = []

        for path, is_directory in sorted(entries):
            parent = nodes.get(os.path.dirname(path))
            if parent is None:
                continue

            if is_directory:
                node = OutlineNode(name=os.path.basename(path), type="directory", path=path, children=[])
                nodes[path] = node
                stats.total_directories += 1
            else:
                size = await self._size(path)
                file_type = classify_file_type(path)
                node = OutlineNode(
                    name=os.path.basename(path),
                    type="file",
                    path=path,
                    file_type=file_type,
                    size=size if options.include_sizes else None,
                )
                stats.total_files += 1
                ext = os.path.splitext(path)[1].lower()
                stats.files_by_extension[ext] = stats.files_by_extension.get(ext, 0) + 1
                file_types[file_type] = file_types.get(file_type, 0) + 1
                if size is not None:
                    stats.total_size += size
                    sizes.append({"path": path, "size": size})

            parent.children.append(node)

        self._sort_children(root)
        stats.largest_files = sorted(sizes, key=lambda item: item["size"], reverse=True)[:10]
        return ProjectOutline(structure=root, stats=stats, file_types=file_types)

    def _sort_children(self, node: OutlineNode) -> None:
        if not node.children:
            return
        node.children.sort(key=lambda child: (child.type != "directory", child.name.lower()))
        for child in node.children:
            self._sort_children(child)

    def clear(self) -> int:
        return self.store.delete_keys_by_pattern(r"^structure:outline:")
