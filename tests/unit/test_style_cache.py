"""Unit tests for per-file cached style checks."""

import json

import pytest

from mcp_project_cache.cache.style_cache import StyleCheckCache
from mcp_project_cache.utils.process import CommandResult


def eslint_output(*messages: dict) -> str:
    return json.dumps([{"filePath": "x", "messages": list(messages)}])


CLEAN = CommandResult(success=True, output=eslint_output())
SEMI = CommandResult(
    success=False,
    output=eslint_output({"ruleId": "semi", "severity": 2, "message": "Missing semicolon.", "line": 1, "column": 30}),
    error="exit status 1",
)


@pytest.fixture
def style_cache_for(store, fingerprints, workspace, checkers):
    def _build(runner) -> StyleCheckCache:
        return StyleCheckCache(store, fingerprints, str(workspace), checkers, runner)

    return _build


class TestStyleCheckCache:
    """Per-file keys and invalidation."""

    def test_file_key(self, style_cache_for, make_runner, workspace):
        """Relative and absolute paths map to the same key."""
        cache = style_cache_for(make_runner(CLEAN))

        assert cache.file_key("src/app.ts") == "src:app.ts"
        assert cache.file_key(str(workspace / "src" / "app.ts")) == "src:app.ts"

    @pytest.mark.asyncio
    async def test_check_file_parses_and_caches(self, style_cache_for, make_runner, workspace, store):
        """Results are parsed and the linter runs once."""
        runner = make_runner(SEMI)
        cache = style_cache_for(runner)

        [record] = await cache.check_files(["src/app.ts"])
        [again] = await cache.check_files(["src/app.ts"])

        assert record == again
        assert record.file_path == "src/app.ts"
        assert store.has("operation:style:src:app.ts")
        assert [(d.rule, d.severity, d.line) for d in record.diagnostics] == [("semi", "error", 1)]
        runner.assert_awaited_once_with(
            ["npx", "eslint", "--format", "json", str(workspace / "src" / "app.ts")],
            cwd=str(workspace),
            timeout=None,
        )

    @pytest.mark.asyncio
    async def test_other_file_change_keeps_entry(self, style_cache_for, make_runner, workspace, modify):
        """Editing another file keeps this file's record."""
        runner = make_runner(CLEAN)
        cache = style_cache_for(runner)
        await cache.check_files(["src/app.ts"])

        modify(workspace / "src" / "util.ts", "export const changed = true;")
        await cache.check_files(["src/app.ts"])

        runner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_config_change_invalidates(self, style_cache_for, make_runner, workspace, modify):
        """Editing a style config invalidates the record."""
        runner = make_runner(CLEAN)
        cache = style_cache_for(runner)
        await cache.check_files(["src/app.ts"])

        modify(workspace / "package.json", '{"name": "demo", "eslintConfig": {}}')
        await cache.check_files(["src/app.ts"])

        assert runner.await_count == 2

    @pytest.mark.asyncio
    async def test_get_cached_results(self, style_cache_for, make_runner):
        """Lookups return None for unchecked files."""
        cache = style_cache_for(make_runner(CLEAN))
        [record] = await cache.check_files(["src/app.ts"])

        assert await cache.get_cached_results(["src/app.ts", "src/util.ts"]) == [record, None]

    @pytest.mark.asyncio
    async def test_check_project_covers_sources(self, style_cache_for, make_runner):
        """Project check covers every discovered source."""
        runner = make_runner(CLEAN)
        cache = style_cache_for(runner)

        records = await cache.check_project()

        assert sorted(r.file_path for r in records) == ["src/app.test.ts", "src/app.ts", "src/util.ts"]
        assert runner.await_count == 3

    @pytest.mark.asyncio
    async def test_malformed_output(self, style_cache_for, make_runner):
        """Unparseable linter output becomes a diagnostic."""
        cache = style_cache_for(make_runner(
            CommandResult(success=False, output="Error: No ESLint configuration found", error="exit status 2")
        ))

        [record] = await cache.check_files(["src/app.ts"])

        assert [d.rule for d in record.diagnostics] == ["parse-error"]

    @pytest.mark.asyncio
    async def test_clear_selected_and_all(self, style_cache_for, make_runner):
        """Clearing selected files or all of them."""
        cache = style_cache_for(make_runner(CLEAN))
        await cache.check_files(["src/app.ts", "src/util.ts"])

        assert cache.clear(["src/app.ts"]) == 1
        assert cache.clear() == 1
