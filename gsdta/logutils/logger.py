"""Logger factory for the GSDTA import tools.

All module loggers live under the ``gsdta`` namespace. Handlers are
attached once to the ``gsdta`` logger and child loggers propagate to it,
so a caller (the CLI, or a test) can reconfigure output in one place.
"""

from __future__ import annotations

import logging
import sys

from .config import LogConfig, LogOutput, get_config
from .formatters import CompactFormatter, JSONFormatter, StandardFormatter
from .handlers import RichConsoleHandler, SafeRotatingFileHandler, StreamHandlerWithFlush

PACKAGE_LOGGER = "gsdta"

_configured: bool = False


def get_logger(name: str | None = None, config: LogConfig | None = None) -> logging.Logger:
    """Get a logger under the package namespace.

    Args:
        name: Logger name (usually __name__). Names outside the ``gsdta``
            namespace are nested under it.
        config: Configuration applied if the package logger is not yet set up

    Returns:
        Logger instance
    """
    if not _configured:
        configure_logging(config)

    if not name or name == PACKAGE_LOGGER:
        return logging.getLogger(PACKAGE_LOGGER)
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    logger = logging.getLogger(name)
    cfg = config or get_config()
    if level := cfg.module_levels.get(name):
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def configure_logging(config: LogConfig | None = None) -> logging.Logger:
    """(Re)configure the package logger.

    Safe to call more than once; existing handlers are replaced.

    Args:
        config: Configuration to apply (defaults to the environment)

    Returns:
        The package logger
    """
    global _configured

    cfg = config or get_config()
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    for handler in _create_handlers(cfg):
        logger.addHandler(handler)

    logger.propagate = False
    _configured = True
    return logger


def _create_handlers(config: LogConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if config.output in (LogOutput.CONSOLE, LogOutput.BOTH):
        handler: logging.Handler
        if config.json_format:
            handler = StreamHandlerWithFlush(sys.stderr)
            handler.setFormatter(
                JSONFormatter(mask_sensitive=config.mask_sensitive, extra_fields=config.extra_fields)
            )
        elif config.use_rich:
            handler = RichConsoleHandler()
            handler.setFormatter(CompactFormatter(mask_sensitive=config.mask_sensitive))
        else:
            handler = StreamHandlerWithFlush(sys.stderr)
            handler.setFormatter(StandardFormatter(mask_sensitive=config.mask_sensitive))
        handlers.append(handler)

    if config.output == LogOutput.JSON:
        handler = StreamHandlerWithFlush(sys.stderr)
        handler.setFormatter(
            JSONFormatter(mask_sensitive=config.mask_sensitive, extra_fields=config.extra_fields)
        )
        handlers.append(handler)

    if config.output in (LogOutput.FILE, LogOutput.BOTH) and config.log_file:
        handler = SafeRotatingFileHandler(
            filename=config.log_file,
            max_bytes=config.max_file_size,
            backup_count=config.backup_count,
        )
        # Files are always JSON lines so runs can be grepped by run_id
        handler.setFormatter(
            JSONFormatter(mask_sensitive=config.mask_sensitive, extra_fields=config.extra_fields)
        )
        handlers.append(handler)

    return handlers


def reset_logging() -> None:
    """Remove package handlers so the next get_logger call reconfigures."""
    global _configured

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    _configured = False
