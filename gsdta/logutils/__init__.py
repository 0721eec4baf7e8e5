"""Logging for the GSDTA import tools.

- Rich console output for interactive imports
- JSON lines for production runs and log files
- Run ids and worksheet scopes via contextvars
- Masking of parent emails, phone numbers and passwords

Usage:
    from gsdta.logutils import get_logger, with_context

    logger = get_logger(__name__)

    with with_context(operation="import_students", sheet="Registration"):
        logger.info("Found %d student records", 42)
"""

from .config import Environment, LogConfig, LogOutput, get_config, reset_config, set_config
from .context import (
    LogContext,
    clear_context,
    get_context,
    get_run_id,
    new_run_id,
    set_context,
    with_context,
)
from .formatters import CompactFormatter, JSONFormatter, StandardFormatter
from .handlers import (
    BufferingHandler,
    RichConsoleHandler,
    SafeRotatingFileHandler,
    StreamHandlerWithFlush,
)
from .logger import PACKAGE_LOGGER, configure_logging, get_logger, reset_logging
from .masking import MASK, SensitiveValue, is_sensitive_key, mask_dict, mask_sensitive_string

__all__ = [
    "get_logger",
    "configure_logging",
    "reset_logging",
    "PACKAGE_LOGGER",
    "with_context",
    "get_context",
    "set_context",
    "clear_context",
    "get_run_id",
    "new_run_id",
    "LogContext",
    "LogConfig",
    "LogOutput",
    "Environment",
    "get_config",
    "set_config",
    "reset_config",
    "JSONFormatter",
    "StandardFormatter",
    "CompactFormatter",
    "RichConsoleHandler",
    "SafeRotatingFileHandler",
    "BufferingHandler",
    "StreamHandlerWithFlush",
    "mask_sensitive_string",
    "mask_dict",
    "is_sensitive_key",
    "SensitiveValue",
    "MASK",
]
