"""Per-file cached style checks (ESLint)."""

import os
import re
from collections.abc import Iterable

import structlog

from ..parsers.diagnostics import failure_diagnostic, parse_eslint_json
from .domain import DomainOperationCache
from .models import StyleCheckRecord

logger = structlog.get_logger("cache.style")


class StyleCheckCache(DomainOperationCache):
    """Style results cached one file at a time.

    A record depends on its own file plus every style config file, so editing
    ``.eslintrc.json`` invalidates the whole project while editing one source
    file only invalidates that file's entry.
    """

    op_type = "style"
    source_patterns = ("**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx")
    config_names = (
        ".eslintrc.js",
        ".eslintrc.json",
        ".eslintrc.yml",
        ".eslintrc.yaml",
        "eslint.config.js",
        "package.json",
    )

    def _resolve(self, path: str) -> str:
        return os.path.abspath(os.path.join(self.workspace_root, path))

    def file_key(self, path: str) -> str:
        """``src/app.ts`` becomes ``src:app.ts``."""
        relative = os.path.relpath(self._resolve(path), self.workspace_root)
        return re.sub(r"[/\\]", ":", relative)

    async def check_file(self, path: str) -> StyleCheckRecord:
        """Style check one file unless a valid result is cached.

        Args:
            path: File path, absolute or relative to the workspace root

        Returns:
            The style record for that file
        """
        absolute = self._resolve(path)
        configs = await self.discover_configs()
        return await self.run_cached(self.file_key(absolute), [absolute], configs)

    async def check_files(self, paths: Iterable[str]) -> list[StyleCheckRecord]:
        return [await self.check_file(path) for path in paths]

    async def check_project(self) -> list[StyleCheckRecord]:
        """Check every discovered source file, one cached record per file."""
        sources = await self.discover_sources()
        logger.info("Style checking project", files=len(sources))
        return await self.check_files(sources)

    async def get_cached_results(self, paths: Iterable[str]) -> list[StyleCheckRecord | None]:
        """Look up cached records without running the checker.

        Args:
            paths: Files to look up

        Returns:
            One entry per path, None where nothing valid is cached
        """
        return [await self.lookup(self.file_key(path)) for path in paths]

    def clear(self, paths: Iterable[str] | None = None) -> int:
        """Drop cached style records.

        Args:
            paths: Files to drop, or None for every style record

        Returns:
            Number of records removed
        """
        if paths is None:
            return super().clear()
        return sum(
            self.store.delete(self.store.generate_key("operation", self.op_type, self.file_key(path)))
            for path in paths
        )

    async def _execute(self, inputs: list[str], configs: list[str], **kwargs) -> StyleCheckRecord:
        absolute = inputs[0]
        relative = os.path.relpath(absolute, self.workspace_root)

        result = await self._run([*self.checkers.style_command, absolute])
        diagnostics = parse_eslint_json(result.output, file_path=relative)
        if not result.launched or (not result.success and not result.output.strip()):
            diagnostics = [failure_diagnostic("Style check", result.error, file_path=relative)]

        return StyleCheckRecord(
            success=result.success,
            raw_output=result.output,
            error=result.error,
            file_fingerprints=await self.fingerprint_inputs([*inputs, *configs]),
            file_path=relative,
            diagnostics=diagnostics,
        )
