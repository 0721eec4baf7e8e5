"""Tests for logging configuration."""

from pathlib import Path

import pytest

from gsdta.logutils.config import (
    Environment,
    LogConfig,
    LogOutput,
    detect_environment,
    get_config,
    reset_config,
    set_config,
)

pytestmark = pytest.mark.unit

ENV_VARS = (
    "CI",
    "GITHUB_ACTIONS",
    "ENVIRONMENT",
    "ENV",
    "LOG_LEVEL",
    "LOG_OUTPUT",
    "LOG_JSON",
    "LOG_RICH",
    "LOG_MASK_SENSITIVE",
    "LOG_FILE",
    "LOG_MAX_SIZE",
    "LOG_BACKUP_COUNT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from a known environment and a fresh global config."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestLogConfig:
    def test_defaults(self):
        config = LogConfig()
        assert config.level == "INFO"
        assert config.output == LogOutput.CONSOLE
        assert config.json_format is False
        assert config.use_rich is True
        assert config.mask_sensitive is True
        assert config.include_run_id is True
        assert config.log_file is None


class TestEnvironmentDetection:
    def test_ci(self, monkeypatch):
        monkeypatch.setenv("CI", "true")
        assert detect_environment() == Environment.CI

    def test_github_actions(self, monkeypatch):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        assert detect_environment() == Environment.CI

    @pytest.mark.parametrize("value", ["prod", "production", "PRODUCTION"])
    def test_production(self, monkeypatch, value):
        monkeypatch.setenv("ENVIRONMENT", value)
        assert detect_environment() == Environment.PRODUCTION

    def test_pytest_counts_as_testing(self):
        # pytest sets PYTEST_CURRENT_TEST while a test runs
        assert detect_environment() == Environment.TESTING


class TestEnvironmentOverrides:
    def test_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert LogConfig.from_env().level == "WARNING"

    def test_log_output(self, monkeypatch):
        monkeypatch.setenv("LOG_OUTPUT", "json")
        assert LogConfig.from_env().output == LogOutput.JSON

    def test_invalid_log_output_is_ignored(self, monkeypatch):
        monkeypatch.setenv("LOG_OUTPUT", "carrier-pigeon")
        assert LogConfig.from_env().output == LogOutput.CONSOLE

    def test_json_and_rich_flags(self, monkeypatch):
        monkeypatch.setenv("LOG_JSON", "yes")
        monkeypatch.setenv("LOG_RICH", "false")
        config = LogConfig.from_env()
        assert config.json_format is True
        assert config.use_rich is False

    def test_mask_sensitive_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("LOG_MASK_SENSITIVE", "0")
        assert LogConfig.from_env().mask_sensitive is False

    def test_log_file_adds_file_output(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "import.log"))
        config = LogConfig.from_env()
        assert config.log_file == tmp_path / "import.log"
        assert config.output == LogOutput.BOTH

    def test_file_rotation_settings(self, monkeypatch):
        monkeypatch.setenv("LOG_MAX_SIZE", "2048")
        monkeypatch.setenv("LOG_BACKUP_COUNT", "2")
        config = LogConfig.from_env()
        assert config.max_file_size == 2048
        assert config.backup_count == 2

    def test_non_numeric_rotation_settings_are_ignored(self, monkeypatch):
        monkeypatch.setenv("LOG_MAX_SIZE", "big")
        assert LogConfig.from_env().max_file_size == 10 * 1024 * 1024


class TestEnvironmentDefaults:
    def test_development(self):
        config = LogConfig.defaults_for(Environment.DEVELOPMENT)
        assert config.level == "INFO"
        assert config.use_rich is True

    def test_production_writes_json_to_console_and_file(self):
        config = LogConfig.defaults_for(Environment.PRODUCTION)
        assert config.output == LogOutput.BOTH
        assert config.json_format is True
        assert config.use_rich is False

    def test_ci_is_plain_text(self):
        config = LogConfig.defaults_for(Environment.CI)
        assert config.use_rich is False
        assert config.json_format is False

    def test_testing_is_verbose(self):
        assert LogConfig.defaults_for(Environment.TESTING).level == "DEBUG"


class TestGlobalConfig:
    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_set_config(self):
        custom = LogConfig(level="ERROR")
        set_config(custom)
        assert get_config() is custom

    def test_reset_config_rereads_environment(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("LOG_LEVEL", "CRITICAL")
        reset_config()
        second = get_config()
        assert second is not first
        assert second.level == "CRITICAL"

    def test_log_file_path_type(self, monkeypatch):
        monkeypatch.setenv("LOG_FILE", "logs/run.log")
        assert isinstance(get_config().log_file, Path)
