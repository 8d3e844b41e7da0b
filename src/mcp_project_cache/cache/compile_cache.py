"""Cached TypeScript compile checks."""

import structlog

from ..parsers.diagnostics import failure_diagnostic, parse_compiler_output
from .domain import DomainOperationCache
from .models import CompileCheckRecord

logger = structlog.get_logger("cache.compile")


class CompileCheckCache(DomainOperationCache):
    """Whole-project compile check keyed on every source and config file."""

    op_type = "compile"
    source_patterns = ("**/*.ts", "**/*.tsx")
    config_names = ("tsconfig.json", "tsconfig.build.json", "tsconfig.dev.json", "package.json")

    async def _key(self) -> tuple[str, list[str], list[str]]:
        sources, configs = await self.discover_inputs()
        return self.cache_key(sources, configs), sources, configs

    async def current_key(self) -> str:
        """Key built from every source and config file currently on disk."""
        key, _, _ = await self._key()
        return key

    async def check(self) -> CompileCheckRecord:
        """Run the compile check unless a valid result is cached.

        Returns:
            The compile record; ``diagnostics`` holds parsed compiler errors
        """
        key, sources, configs = await self._key()
        return await self.run_cached(key, sources, configs)

    async def get_cached(self) -> CompileCheckRecord | None:
        """Cached compile record for the current inputs, or None."""
        return await self.lookup(await self.current_key())

    async def _execute(self, inputs: list[str], configs: list[str], **kwargs) -> CompileCheckRecord:
        result = await self._run(list(self.checkers.compile_command))
        diagnostics = parse_compiler_output(result.output, self.workspace_root)
        if not result.success and not diagnostics:
            diagnostics = [failure_diagnostic("Compile check", result.error)]

        if diagnostics:
            logger.info("Compile check reported diagnostics", count=len(diagnostics))

        return CompileCheckRecord(
            success=result.success,
            raw_output=result.output,
            error=result.error,
            file_fingerprints=await self.fingerprint_inputs([*inputs, *configs]),
            diagnostics=diagnostics,
        )
