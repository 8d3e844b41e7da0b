"""Unit tests for per-workspace cache wiring."""

import asyncio

import pytest

from mcp_project_cache.config import McpCacheConfig
from mcp_project_cache.services.workspace_cache import WorkspaceCache
from mcp_project_cache.utils.process import CommandResult


@pytest.fixture
def ws(workspace, store, make_runner, clock) -> WorkspaceCache:
    return WorkspaceCache(
        str(workspace), store, runner=make_runner(CommandResult(success=True, output="")), clock=clock
    )


class TestWorkspaceCache:

    @pytest.mark.asyncio
    async def test_file_change_invalidates_and_marks_dirty(self, ws, workspace):
        """A change drops dependent records and marks the file dirty."""
        await ws.compile.check()
        changed = str(workspace / "src" / "util.ts")

        invalidated = ws.handle_file_change(changed)

        assert invalidated == 1
        assert await ws.compile.get_cached() is None
        assert ws.tracker.changed_files() == [changed]

    @pytest.mark.asyncio
    async def test_unrelated_change_keeps_results(self, ws, workspace):
        """Records that do not depend on the file survive."""
        await ws.style.check_files(["src/app.ts"])

        assert ws.handle_file_change(str(workspace / "src" / "util.ts")) == 0
        assert await ws.style.get_cached_results(["src/app.ts"]) != [None]

    @pytest.mark.asyncio
    async def test_warm_fingerprints_sources(self, ws, store):
        """Warming fingerprints every source and config."""
        warmed = await ws.warm()

        assert warmed == 5
        assert len(store.get_keys_by_pattern(r"^metadata:")) == 5

    @pytest.mark.asyncio
    async def test_start_and_close(self, ws):
        """Start runs the loops and close stops them."""
        await ws.start(watch=False)

        assert ws.monitor.monitoring_running
        assert ws.monitor.cleanup_running

        await ws.close()

        assert not ws.monitor.monitoring_running
        assert not ws.monitor.cleanup_running

    @pytest.mark.asyncio
    async def test_expiry_loop_purges(self, workspace, store, clock):
        """The expiry loop purges on each interval."""
        sweeps = []

        async def fake_sleep(seconds):
            sweeps.append(seconds)
            if len(sweeps) > 1:
                ws._expiry_running = False
            await asyncio.sleep(0)

        ws = WorkspaceCache(str(workspace), store, clock=clock, sleep=fake_sleep)
        ws.monitor_settings.enable_monitoring = False
        ws.monitor_settings.enable_auto_cleanup = False
        store.set("temp:a", 1, ttl=1)
        clock.advance(5)

        await ws.start(watch=False)
        await ws._expiry_task

        assert store.purge_expired() == 0
        assert sweeps[0] == 120

    def test_settings_from_config(self, workspace, store, tmp_path):
        """Checker settings come from the config file."""
        config = McpCacheConfig(config_path=tmp_path / "config.json", configure_logging=False)
        config.update_config(**{"checkers.max_source_files": 7})

        ws = WorkspaceCache(str(workspace), store, config=config)

        assert ws.tests.checkers.max_source_files == 7

    def test_stats_shape(self, ws):
        """Combined stats sections."""
        stats = ws.stats()

        assert set(stats) == {"store", "efficiency", "operations", "health", "changes"}
