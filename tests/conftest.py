"""Pytest configuration and shared fixtures for mcp-project-cache tests."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from mcp_project_cache.cache.fingerprint import FingerprintService
from mcp_project_cache.cache.store import CacheStore
from mcp_project_cache.config import CacheSettings, CheckerSettings
from mcp_project_cache.utils.process import CommandResult


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> CacheStore:
    """A fresh store per test, driven by the fake clock."""
    return CacheStore(CacheSettings(), clock=clock)


@pytest.fixture
def fingerprints(store) -> FingerprintService:
    return FingerprintService(store)


@pytest.fixture
def workspace(tmp_path) -> Path:
    """A small TypeScript project on disk."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.ts").write_text("export const answer: number = 42;\n")
    (tmp_path / "src" / "util.ts").write_text("export function add(a: number, b: number) { return a + b; }\n")
    (tmp_path / "src" / "app.test.ts").write_text("import { answer } from './app';\n")
    (tmp_path / "tsconfig.json").write_text('{"compilerOptions": {"strict": true}}\n')
    (tmp_path / "package.json").write_text('{"name": "demo", "version": "1.0.0"}\n')
    (tmp_path / "node_modules" / "dep").mkdir(parents=True)
    (tmp_path / "node_modules" / "dep" / "index.js").write_text("module.exports = {};\n")
    return tmp_path


@pytest.fixture
def checkers() -> CheckerSettings:
    return CheckerSettings()


@pytest.fixture
def make_runner() -> Callable[..., AsyncMock]:
    """Build an ``AsyncMock`` process runner returning the given results in order."""

    def _make(*results: CommandResult) -> AsyncMock:
        if len(results) == 1:
            return AsyncMock(return_value=results[0])
        return AsyncMock(side_effect=list(results))

    return _make


@pytest.fixture
def modify() -> Callable[[Path, str], None]:
    """Rewrite a file so both its size and content change."""

    def _modify(path: Path, content: str) -> None:
        path.write_text(content + "\n" * (len(path.read_text()) + 1))

    return _modify
