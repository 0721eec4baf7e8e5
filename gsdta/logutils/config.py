"""Logging configuration for the GSDTA import tools.

The importer runs in three places: on a developer laptop against the
Firebase emulators, in CI against a scratch SQLite store, and by an
administrator against production Firestore. Each gets its own defaults,
which environment variables can override.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

_TRUTHY = ("true", "1", "yes")


class Environment(Enum):
    """Where the importer is running."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"
    CI = "ci"


class LogOutput(Enum):
    """Log output destination."""

    CONSOLE = "console"
    FILE = "file"
    BOTH = "both"
    JSON = "json"


@dataclass
class LogConfig:
    """Logging configuration container."""

    level: str = "INFO"
    output: LogOutput = LogOutput.CONSOLE
    json_format: bool = False
    use_rich: bool = True

    # Parent emails and phone numbers end up in row-level log lines
    mask_sensitive: bool = True

    include_run_id: bool = True
    log_file: Path | None = None
    max_file_size: int = 10 * 1024 * 1024
    backup_count: int = 5
    module_levels: dict[str, str] = field(default_factory=dict)
    extra_fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> LogConfig:
        """Build configuration from the environment.

        Environment variables:
            LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
            LOG_OUTPUT: console, file, both or json
            LOG_JSON: Emit JSON lines on the console (true/false)
            LOG_RICH: Use the Rich console handler (true/false)
            LOG_MASK_SENSITIVE: Mask emails, phones and passwords (true/false)
            LOG_FILE: Path of the rotating log file
            LOG_MAX_SIZE: Max log file size in bytes
            LOG_BACKUP_COUNT: Number of rotated files to keep

        Returns:
            LogConfig instance configured from environment
        """
        config = cls.defaults_for(detect_environment())

        if level := os.getenv("LOG_LEVEL"):
            config.level = level.upper()

        if output := os.getenv("LOG_OUTPUT"):
            try:
                config.output = LogOutput(output.lower())
            except ValueError:
                pass

        if json_format := os.getenv("LOG_JSON"):
            config.json_format = json_format.lower() in _TRUTHY

        if use_rich := os.getenv("LOG_RICH"):
            config.use_rich = use_rich.lower() in _TRUTHY

        if mask_sensitive := os.getenv("LOG_MASK_SENSITIVE"):
            config.mask_sensitive = mask_sensitive.lower() in _TRUTHY

        if log_file := os.getenv("LOG_FILE"):
            config.log_file = Path(log_file)
            if config.output == LogOutput.CONSOLE:
                config.output = LogOutput.BOTH

        for name, attr in (("LOG_MAX_SIZE", "max_file_size"), ("LOG_BACKUP_COUNT", "backup_count")):
            if raw := os.getenv(name):
                try:
                    setattr(config, attr, int(raw))
                except ValueError:
                    pass

        return config

    @classmethod
    def defaults_for(cls, env: Environment) -> LogConfig:
        """Get default configuration for an environment."""
        if env == Environment.PRODUCTION:
            return cls(level="INFO", output=LogOutput.BOTH, json_format=True, use_rich=False)

        if env == Environment.CI:
            return cls(level="INFO", use_rich=False)

        if env == Environment.TESTING:
            return cls(level="DEBUG", use_rich=False)

        return cls(level="INFO", use_rich=True)


def detect_environment() -> Environment:
    """Detect the current runtime environment."""
    if os.getenv("CI") or os.getenv("GITHUB_ACTIONS"):
        return Environment.CI

    env_name = os.getenv("ENVIRONMENT", os.getenv("ENV", "")).lower()
    if env_name in ("prod", "production"):
        return Environment.PRODUCTION
    if env_name in ("test", "testing") or os.getenv("PYTEST_CURRENT_TEST"):
        return Environment.TESTING

    return Environment.DEVELOPMENT


_config: LogConfig | None = None


def get_config() -> LogConfig:
    """Get the current logging configuration."""
    global _config
    if _config is None:
        _config = LogConfig.from_env()
    return _config


def set_config(config: LogConfig) -> None:
    """Replace the logging configuration."""
    global _config
    _config = config


def reset_config() -> None:
    """Forget the current configuration so the next call rereads the environment."""
    global _config
    _config = None
