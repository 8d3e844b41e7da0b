"""Shared lookup/run/store cycle for the domain operation caches."""

import os
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

import structlog

from ..config import CheckerSettings
from ..utils.discovery import discover_files
from ..utils.process import CommandResult, run_command
from .fingerprint import FingerprintService
from .models import OperationRecord
from .operation_cache import OperationCache
from .store import CacheStore

logger = structlog.get_logger("cache.domain")

CommandRunner = Callable[..., Awaitable[CommandResult]]


class DomainOperationCache(ABC):
    """Base for caches that wrap one kind of external checker.

    Subclasses set ``op_type``, ``source_patterns`` and ``config_names`` and
    implement the abstract ``_execute`` hook, which runs the checker and
    builds the record. Instances hold no cached data themselves; the
    shared store does.
    """

    op_type: str = ""
    source_patterns: tuple[str, ...] = ()
    config_names: tuple[str, ...] = ()

    def __init__(
        self,
        store: CacheStore,
        fingerprints: FingerprintService,
        workspace_root: str,
        checkers: CheckerSettings | None = None,
        runner: CommandRunner = run_command,
    ):
        self.store = store
        self.fingerprints = fingerprints
        self.operations = OperationCache(store, fingerprints)
        self.workspace_root = os.path.abspath(workspace_root)
        self.checkers = checkers or CheckerSettings()
        self._runner = runner

    async def discover_sources(self) -> list[str]:
        return discover_files(self.workspace_root, self.source_patterns)

    async def discover_configs(self) -> list[str]:
        """Configuration files from ``config_names`` that exist."""
        candidates = [os.path.join(self.workspace_root, name) for name in self.config_names]
        fingerprints = await self.fingerprints.get_batch(candidates)
        return [fp.path for fp in fingerprints if fp.exists]

    async def discover_inputs(self) -> tuple[list[str], list[str]]:
        return await self.discover_sources(), await self.discover_configs()

    def cache_key(self, files: list[str], configs: list[str], param: str | None = None) -> str:
        """Build the operation key for a set of inputs.

        Args:
            files: Source paths the operation depends on
            configs: Configuration paths the operation depends on
            param: Optional operation parameter appended as ``:<param>``

        Returns:
            The key within the ``operation:<op_type>:`` namespace
        """
        base = self.operations.build_key(files, configs)
        return f"{base}:{param}" if param else base

    async def fingerprint_inputs(self, paths: list[str]) -> dict[str, str]:
        """Hash map over exactly the given inputs."""
        fingerprints = await self.fingerprints.get_batch(paths)
        return {path: fp.content_hash for path, fp in zip(paths, fingerprints)}

    async def lookup(self, key: str) -> OperationRecord | None:
        """Look up a cached record and re-validate its fingerprints.

        Args:
            key: Operation key from ``cache_key``

        Returns:
            The cached record if every file it depends on is unchanged, else None
        """
        cached = self.operations.get_raw(self.op_type, key)
        if cached is not None and await self.operations.is_valid(cached):
            logger.debug("Operation cache hit", op_type=self.op_type, key=key)
            return cached
        return None

    async def run_cached(self, key: str, inputs: list[str], configs: list[str],
                         **execute_kwargs) -> OperationRecord:
        """Return a valid cached record for ``key`` or run the checker and cache its result.

        Args:
            key: Operation key from ``cache_key``
            inputs: Source paths handed to ``_execute``
            configs: Configuration paths handed to ``_execute``
            **execute_kwargs: Extra parameters for ``_execute``

        Returns:
            The cached or freshly produced record
        """
        cached = await self.lookup(key)
        if cached is not None:
            return cached

        logger.info("Running checker", op_type=self.op_type,
                    inputs=len(inputs), configs=len(configs))
        record = await self._execute(inputs, configs, **execute_kwargs)
        self.operations.put(self.op_type, key, record)
        return record

    async def _run(self, command: list[str]) -> CommandResult:
        return await self._runner(command, cwd=self.workspace_root, timeout=self.checkers.timeout_s)

    @abstractmethod
    async def _execute(self, inputs: list[str], configs: list[str], **kwargs) -> OperationRecord:
        """Run the checker over ``inputs`` and build the record to cache.

        Args:
            inputs: Absolute paths of the discovered source files
            configs: Absolute paths of the configuration files that exist
            **kwargs: Operation-specific parameters passed through ``run_cached``

        Returns:
            A record whose ``file_fingerprints`` cover ``inputs`` and ``configs``
        """

    def clear(self) -> int:
        return self.operations.clear_type(self.op_type)

    def stats(self) -> dict[str, int]:
        return self.operations.type_stats(self.op_type)
