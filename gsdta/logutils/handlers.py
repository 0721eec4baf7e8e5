"""Log handlers.

- RichConsoleHandler: colourised console output for interactive runs
- SafeRotatingFileHandler: rotating file that creates its directory
- BufferingHandler: keeps records in memory, used by tests and dry-run checks
- StreamHandlerWithFlush: plain stream that flushes every record (CI)
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import IO

from rich.console import Console
from rich.text import Text


class RichConsoleHandler(logging.Handler):
    """Log handler that prints to a Rich console with level styling."""

    LEVEL_STYLES = {
        "DEBUG": "dim",
        "INFO": "blue",
        "WARNING": "yellow",
        "ERROR": "red bold",
        "CRITICAL": "red bold reverse",
    }

    # Dry-run lines get their own colour so previews stand out from real writes
    DRY_RUN_STYLE = "magenta"

    def __init__(self, console: Console | None = None, show_path: bool = False) -> None:
        super().__init__()
        self.console = console or Console(stderr=True)
        self.show_path = show_path

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            style = self.LEVEL_STYLES.get(record.levelname, "")

            text = Text()
            text.append(f"[{record.levelname:8}]", style=style)
            text.append(" ")
            text.append(message, style=self.DRY_RUN_STYLE if "[DRY-RUN]" in message else "")

            if self.show_path:
                text.append(f" ({record.filename}:{record.lineno})", style="dim")

            self.console.print(text)
        except Exception:
            self.handleError(record)


class SafeRotatingFileHandler(RotatingFileHandler):
    """Rotating file handler that creates the log directory and writes UTF-8."""

    DEFAULT_MAX_BYTES = 10 * 1024 * 1024
    DEFAULT_BACKUP_COUNT = 5

    def __init__(
        self,
        filename: str | Path,
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        encoding: str = "utf-8",
    ) -> None:
        log_path = Path(filename)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        super().__init__(
            filename=str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding=encoding,
        )


class BufferingHandler(logging.Handler):
    """Handler that keeps the most recent records in memory."""

    def __init__(self, capacity: int = 10000) -> None:
        super().__init__()
        self.capacity = capacity
        self.buffer: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.buffer.append(record)
        if len(self.buffer) > self.capacity:
            self.buffer.pop(0)

    def get_records(self) -> list[logging.LogRecord]:
        """Get all buffered records."""
        return list(self.buffer)

    def messages(self, level: int = logging.NOTSET) -> list[str]:
        """Rendered messages of buffered records at or above ``level``."""
        return [r.getMessage() for r in self.buffer if r.levelno >= level]

    def clear(self) -> None:
        """Clear the buffer."""
        self.buffer.clear()


class StreamHandlerWithFlush(logging.StreamHandler):
    """StreamHandler that flushes after each record."""

    def __init__(self, stream: IO[str] | None = None) -> None:
        super().__init__(stream or sys.stderr)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            super().emit(record)
            self.flush()
        except Exception:
            self.handleError(record)
