"""Configuration management for mcp-project-cache."""

import copy
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

# Default configuration
DEFAULT_CONFIG = {
    "logging": {
        "level": "INFO",
        "verbose": False,
        "debug": False,
        "terminal_safe": True,  # JSON logs keep ANSI codes out of MCP clients
        "mcp_mode": "auto",  # "auto", "force", "disable"
    },
    "cache": {
        "metadata_ttl_s": 300,
        "operation_ttl_s": 1800,
        "structure_ttl_s": 900,
        "max_keys": 1000,
        "check_period_s": 120,
        "large_file_threshold_bytes": 10 * 1024 * 1024,
        "warmup_batch_size": 50,
    },
    "monitor": {
        "enable_monitoring": True,
        "monitoring_interval_s": 10.0,
        "log_performance_threshold": 0.7,
        "enable_auto_cleanup": True,
        "cleanup_threshold": 0.8,
        "cleanup_interval_s": 30.0,
        "history_limit": 1000,
        "history_trim_to": 500,
    },
    "checkers": {
        "timeout_s": None,
        "compile_command": ["npx", "tsc", "--noEmit"],
        "style_command": ["npx", "eslint", "--format", "json"],
        "test_commands": [
            ["npx", "jest", "--passWithNoTests"],
            ["npm", "test"],
            ["npx", "vitest", "run"],
            ["npx", "mocha"],
        ],
        "max_source_files": 100,
    },
    "watcher": {
        "watch_patterns": [
            "*.ts", "*.tsx", "*.js", "*.jsx",
            "package.json", "package-lock.json", "pnpm-lock.yaml", "tsconfig.*",
        ],
        "ignored_patterns": ["node_modules"],
        "debounce_s": 0.5,
    },
}


class CacheSettings(BaseModel):
    """Typed view over the ``cache`` config section."""

    metadata_ttl_s: int = 300
    operation_ttl_s: int = 1800
    structure_ttl_s: int = 900
    max_keys: int = Field(default=1000, gt=0)
    check_period_s: int = 120
    large_file_threshold_bytes: int = 10 * 1024 * 1024
    warmup_batch_size: int = 50


class MonitorSettings(BaseModel):
    """Typed view over the ``monitor`` config section."""

    enable_monitoring: bool = True
    monitoring_interval_s: float = 10.0
    log_performance_threshold: float = 0.7
    enable_auto_cleanup: bool = True
    cleanup_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    cleanup_interval_s: float = 30.0
    history_limit: int = 1000
    history_trim_to: int = 500


class CheckerSettings(BaseModel):
    """Typed view over the ``checkers`` config section."""

    timeout_s: float | None = None
    compile_command: list[str] = Field(default_factory=lambda: ["npx", "tsc", "--noEmit"])
    style_command: list[str] = Field(default_factory=lambda: ["npx", "eslint", "--format", "json"])
    test_commands: list[list[str]] = Field(default_factory=lambda: [
        ["npx", "jest", "--passWithNoTests"],
        ["npm", "test"],
        ["npx", "vitest", "run"],
        ["npx", "mocha"],
    ])
    max_source_files: int = 100


class WatcherSettings(BaseModel):
    """Typed view over the ``watcher`` config section."""

    watch_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_CONFIG["watcher"]["watch_patterns"]))
    ignored_patterns: list[str] = Field(default_factory=lambda: ["node_modules"])
    debounce_s: float = 0.5


class McpCacheConfig:
    """Configuration manager for mcp-project-cache."""

    def __init__(self, config_path: Path | None = None, configure_logging: bool = True):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to ~/.mcp-project-cache/config.json
            configure_logging: Apply the logging section to structlog on load
        """
        if config_path is None:
            config_dir = Path.home() / ".mcp-project-cache"
            config_dir.mkdir(exist_ok=True)
            config_path = config_dir / "config.json"

        self.config_path = config_path
        self.configure_logging = configure_logging
        self.config = self._load_config()
        if configure_logging:
            self._configure_logging()

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file or create default."""
        if self.config_path.exists():
            try:
                with open(self.config_path) as f:
                    user_config = json.load(f)
                config = copy.deepcopy(DEFAULT_CONFIG)
                self._deep_merge(config, user_config)
                return config
            except (json.JSONDecodeError, OSError) as e:
                print(f"Warning: Invalid config file {self.config_path}, using defaults: {e}",
                      file=sys.stderr)
                return copy.deepcopy(DEFAULT_CONFIG)
        else:
            self._save_config(DEFAULT_CONFIG)
            return copy.deepcopy(DEFAULT_CONFIG)

    def _deep_merge(self, target: dict[str, Any], source: dict[str, Any]) -> None:
        """Deep merge source into target dictionary."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._deep_merge(target[key], value)
            else:
                target[key] = value

    def _save_config(self, config: dict[str, Any]) -> None:
        """Save configuration to file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            print(f"Warning: Could not save config to {self.config_path}: {e}", file=sys.stderr)

    def _configure_logging(self) -> None:
        """Configure structlog based on current config."""
        log_level = self.config["logging"]["level"]
        verbose = self.config["logging"]["verbose"]
        debug = self.config["logging"]["debug"]
        terminal_safe = self.config["logging"]["terminal_safe"]
        mcp_mode = self.config["logging"]["mcp_mode"]

        if debug:
            level = logging.DEBUG
        elif verbose:
            level = logging.INFO
        else:
            level = getattr(logging, log_level.upper(), logging.INFO)

        is_mcp_environment = self._detect_mcp_environment(mcp_mode)

        if terminal_safe or is_mcp_environment:
            renderer = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer() if debug or verbose else structlog.processors.JSONRenderer()

        structlog.configure(
            processors=[
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                renderer,
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),  # stdout belongs to MCP
            cache_logger_on_first_use=True,
        )

    def _detect_mcp_environment(self, mcp_mode: str) -> bool:
        """Detect if we're running under an MCP client."""
        if mcp_mode == "force":
            return True
        elif mcp_mode == "disable":
            return False
        elif mcp_mode == "auto":
            indicators = [
                "MCP_SERVER" in os.environ,
                "CLAUDE_CODE" in os.environ,
                "claude" in os.environ.get("TERM_PROGRAM", "").lower(),
            ]
            return any(indicators)
        return False

    def update_config(self, **kwargs) -> None:
        """Update configuration and save to file.

        Args:
            **kwargs: Configuration updates; dotted keys address nested sections
                (e.g. ``{"cache.max_keys": 2000}``)
        """
        for key, value in kwargs.items():
            if "." in key:
                keys = key.split(".")
                current = self.config
                for k in keys[:-1]:
                    if k not in current:
                        current[k] = {}
                    current = current[k]
                current[keys[-1]] = value
            else:
                self.config[key] = value

        self._save_config(self.config)
        if self.configure_logging:
            self._configure_logging()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "cache.max_keys")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split(".")
        current = self.config

        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default

        return current

    def cache_settings(self) -> CacheSettings:
        return CacheSettings(**self.config.get("cache", {}))

    def monitor_settings(self) -> MonitorSettings:
        return MonitorSettings(**self.config.get("monitor", {}))

    def checker_settings(self) -> CheckerSettings:
        return CheckerSettings(**self.config.get("checkers", {}))

    def watcher_settings(self) -> WatcherSettings:
        return WatcherSettings(**self.config.get("watcher", {}))


_config: McpCacheConfig | None = None


def get_config() -> McpCacheConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = McpCacheConfig()
    return _config
