"""Log formatters.

- JSONFormatter: one JSON object per line, for files and production runs
- StandardFormatter: timestamped text with the run id
- CompactFormatter: short console lines for interactive imports
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from .context import get_context
from .masking import mask_dict, mask_sensitive_string


def _masked_message(record: logging.LogRecord, mask_sensitive: bool) -> str:
    message = record.getMessage()
    return mask_sensitive_string(message) if mask_sensitive else message


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging output."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_context: bool = True,
        mask_sensitive: bool = True,
        extra_fields: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the JSON formatter.

        Args:
            include_timestamp: Include ISO timestamp in output
            include_context: Include run id, operation and sheet
            mask_sensitive: Mask personal data in messages and extra data
            extra_fields: Static fields added to every record
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_context = include_context
        self.mask_sensitive = mask_sensitive
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": _masked_message(record, self.mask_sensitive),
        }

        if self.include_timestamp:
            log_data["timestamp"] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat()

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if self.include_context:
            log_data["context"] = get_context().to_dict()

        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        extra = getattr(record, "extra_data", None)
        if extra:
            if self.mask_sensitive and isinstance(extra, dict):
                extra = mask_dict(extra)
            log_data["extra"] = extra

        log_data.update(self.extra_fields)
        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter.

    Format: TIMESTAMP - LEVEL - LOGGER - [RUN_ID] - MESSAGE
    """

    DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - [%(run_id)s] - %(message)s"
    DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        mask_sensitive: bool = True,
    ) -> None:
        super().__init__(
            fmt=fmt or self.DEFAULT_FORMAT,
            datefmt=datefmt or self.DEFAULT_DATE_FORMAT,
        )
        self.mask_sensitive = mask_sensitive

    def format(self, record: logging.LogRecord) -> str:
        record.run_id = get_context().run_id

        if not self.mask_sensitive:
            return super().format(record)

        # Mask the rendered message, then restore so other handlers see the original
        original_msg, original_args = record.msg, record.args
        record.msg, record.args = mask_sensitive_string(record.getMessage()), None
        try:
            return super().format(record)
        finally:
            record.msg, record.args = original_msg, original_args


class CompactFormatter(logging.Formatter):
    """Compact formatter for CLI output.

    Format: [sheet] MESSAGE, or just MESSAGE outside a worksheet scope.
    """

    def __init__(self, mask_sensitive: bool = True, show_sheet: bool = True) -> None:
        super().__init__()
        self.mask_sensitive = mask_sensitive
        self.show_sheet = show_sheet

    def format(self, record: logging.LogRecord) -> str:
        message = _masked_message(record, self.mask_sensitive)
        sheet = get_context().sheet
        if self.show_sheet and sheet:
            message = f"[{sheet}] {message}"
        if record.exc_info and record.exc_info[1]:
            message = f"{message}: {record.exc_info[1]}"
        return message
