"""Run context for import log lines.

Every import run gets a short run id, and each phase narrows the context
to the worksheet (and row) it is working on, so a warning deep inside the
roster pass can be traced back to the sheet that caused it.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field, replace
from typing import Any


def new_run_id() -> str:
    """Generate a short identifier for one import run."""
    return uuid.uuid4().hex[:12]


@dataclass
class LogContext:
    """Contextual fields attached to every log record."""

    run_id: str = field(default_factory=new_run_id)
    operation: str | None = None
    sheet: str | None = None
    row: int | None = None
    dry_run: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for log enrichment."""
        result: dict[str, Any] = {"run_id": self.run_id}

        if self.operation:
            result["operation"] = self.operation
        if self.sheet:
            result["sheet"] = self.sheet
        if self.row is not None:
            result["row"] = self.row
        if self.dry_run:
            result["dry_run"] = True

        result.update(self.extra)
        return result


_log_context: ContextVar[LogContext | None] = ContextVar("gsdta_log_context", default=None)


def get_context() -> LogContext:
    """Get the current log context, creating a new one if none exists."""
    ctx = _log_context.get()
    if ctx is None:
        ctx = LogContext()
        _log_context.set(ctx)
    return ctx


def set_context(context: LogContext) -> None:
    """Set the current log context."""
    _log_context.set(context)


def clear_context() -> None:
    """Clear the current log context."""
    _log_context.set(None)


def get_run_id() -> str:
    """Get the current run id."""
    return get_context().run_id


class ContextScope:
    """Context manager that layers fields on top of the current context.

    Fields not passed are inherited from the enclosing scope, so a sheet
    scope opened inside a run scope keeps the run id.
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = fields
        self._token: Token[LogContext | None] | None = None

    def __enter__(self) -> LogContext:
        parent = _log_context.get() or LogContext()
        known = {k: v for k, v in self._fields.items() if k in LogContext.__dataclass_fields__}
        extra = {k: v for k, v in self._fields.items() if k not in known}
        ctx = replace(parent, **known, extra={**parent.extra, **extra})
        self._token = _log_context.set(ctx)
        return ctx

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def with_context(**fields: Any) -> ContextScope:
    """Open a logging scope.

    Usage:
        with with_context(operation="import_students", sheet="Registration"):
            logger.info("Found 42 student records")
    """
    return ContextScope(**fields)
