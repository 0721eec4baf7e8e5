"""Tests for the package logger factory."""

import io
import json
import logging

import pytest

from gsdta.logutils import (
    PACKAGE_LOGGER,
    BufferingHandler,
    LogConfig,
    LogOutput,
    RichConsoleHandler,
    SafeRotatingFileHandler,
    StreamHandlerWithFlush,
    configure_logging,
    get_logger,
    reset_config,
    reset_logging,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def reset_all():
    reset_logging()
    reset_config()
    yield
    reset_logging()
    reset_config()
    configure_logging(LogConfig(level="DEBUG", use_rich=False))


class TestGetLogger:
    def test_nests_names_under_package(self):
        assert get_logger("scripts.import").name == "gsdta.scripts.import"

    def test_package_names_are_kept(self):
        assert get_logger("gsdta.importer.classes").name == "gsdta.importer.classes"

    def test_none_returns_package_logger(self):
        assert get_logger(None).name == PACKAGE_LOGGER
        assert get_logger(PACKAGE_LOGGER) is logging.getLogger(PACKAGE_LOGGER)

    def test_configures_on_first_use(self):
        assert logging.getLogger(PACKAGE_LOGGER).handlers == []
        get_logger("gsdta.test")
        assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 1

    def test_configured_only_once(self):
        get_logger("gsdta.first")
        handlers = list(logging.getLogger(PACKAGE_LOGGER).handlers)
        get_logger("gsdta.second")
        assert logging.getLogger(PACKAGE_LOGGER).handlers == handlers

    def test_module_levels(self):
        config = LogConfig(module_levels={"gsdta.test.quiet": "ERROR"})
        logger = get_logger("gsdta.test.quiet", config=config)
        assert logger.level == logging.ERROR


class TestConfigureLogging:
    def test_replaces_handlers(self):
        configure_logging(LogConfig(use_rich=False))
        configure_logging(LogConfig(use_rich=False))
        assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 1

    def test_does_not_propagate_to_root(self):
        assert configure_logging(LogConfig()).propagate is False

    def test_sets_level(self):
        logger = configure_logging(LogConfig(level="WARNING"))
        assert logger.level == logging.WARNING

    def test_rich_console(self):
        logger = configure_logging(LogConfig(use_rich=True))
        assert isinstance(logger.handlers[0], RichConsoleHandler)

    def test_plain_console(self):
        logger = configure_logging(LogConfig(use_rich=False))
        assert isinstance(logger.handlers[0], StreamHandlerWithFlush)

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "import.log"
        logger = configure_logging(LogConfig(output=LogOutput.FILE, log_file=log_file))
        assert [type(h) for h in logger.handlers] == [SafeRotatingFileHandler]

        get_logger("gsdta.test").info("Imported: %s", "Test Child")
        logger.handlers[0].flush()

        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(line)["message"] == "Imported: Test Child"

    def test_json_console_output(self):
        logger = configure_logging(LogConfig(json_format=True))
        stream = io.StringIO()
        logger.handlers[0].setStream(stream)

        get_logger("gsdta.test").warning("Unmapped grade %r", "Grade 12")

        data = json.loads(stream.getvalue().strip())
        assert data["level"] == "WARNING"
        assert data["message"] == "Unmapped grade 'Grade 12'"


class TestResetLogging:
    def test_clears_handlers(self):
        configure_logging(LogConfig(use_rich=False))
        reset_logging()
        assert logging.getLogger(PACKAGE_LOGGER).handlers == []

    def test_allows_reconfiguration(self):
        get_logger("gsdta.test")
        reset_logging()
        get_logger("gsdta.test")
        assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 1


class TestLogLevels:
    def test_records_below_level_are_dropped(self):
        logger = configure_logging(LogConfig(level="WARNING", use_rich=False))
        buffer = BufferingHandler()
        logger.addHandler(buffer)

        child = get_logger("gsdta.test")
        child.info("hidden")
        child.warning("shown")

        assert buffer.messages() == ["shown"]

    def test_buffer_filters_by_level(self):
        logger = configure_logging(LogConfig(level="DEBUG", use_rich=False))
        buffer = BufferingHandler()
        logger.addHandler(buffer)

        child = get_logger("gsdta.test")
        child.debug("debug")
        child.error("error")

        assert buffer.messages(logging.ERROR) == ["error"]
        assert len(buffer.get_records()) == 2

        buffer.clear()
        assert buffer.messages() == []
