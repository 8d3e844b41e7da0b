"""Unit tests for file discovery and process execution."""

import sys

import pytest

from mcp_project_cache.utils.discovery import discover_files, matches_any
from mcp_project_cache.utils.process import run_command


class TestDiscovery:

    def test_matches_any(self):
        """Glob matching with ** patterns."""
        assert matches_any("app.ts", ["**/*.ts"])
        assert matches_any("src/deep/app.ts", ["**/*.ts"])
        assert matches_any("packages/a/node_modules/x.js", ["node_modules/**"])
        assert not matches_any("src/app.js", ["**/*.ts"])

    def test_discover_skips_excluded(self, workspace):
        """Excluded directories are not walked."""
        found = discover_files(workspace, ["**/*.ts", "**/*.js"])

        assert found == sorted([
            str(workspace / "src" / "app.test.ts"),
            str(workspace / "src" / "app.ts"),
            str(workspace / "src" / "util.ts"),
        ])


class TestRunCommand:

    @pytest.mark.asyncio
    async def test_success_captures_streams(self, tmp_path):
        """stdout and stderr are captured separately."""
        result = await run_command(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"],
            cwd=str(tmp_path),
        )

        assert result.success
        assert result.output.strip() == "out"
        assert result.stderr.strip() == "err"
        assert result.error is None
        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_failure_without_stderr(self):
        """A silent failure reports its exit status."""
        result = await run_command([sys.executable, "-c", "raise SystemExit(3)"])

        assert not result.success
        assert result.exit_code == 3
        assert result.error == "exit status 3"

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        """A missing binary is reported as not launched."""
        result = await run_command(["definitely-not-a-real-checker-binary"])

        assert not result.launched
        assert not result.success

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Commands are killed after the timeout."""
        result = await run_command([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2)

        assert not result.success
        assert "timed out" in result.error
