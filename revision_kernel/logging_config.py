"""
Structured JSON logging for the revision kernel.

Every record under the ``revision_kernel`` logger becomes one JSON line
carrying the record's ``extra`` fields plus whatever operation context is
bound through ``LogContext`` (order number, revision id, actor).  The
lifecycle service binds that context around each action so that engine
traces and repository logs emitted underneath pick it up for free.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import contextlib
import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

LOGGER_NAMESPACE = "revision_kernel"

CONTEXT_FIELDS = (
    "correlation_id",
    "order_number",
    "revision_id",
    "actor_id",
    "trace_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("revision_log_context", default={})


class LogContext:
    """Operation-scoped fields attached to every record; safe across threads and tasks."""

    @staticmethod
    def _check(fields: dict[str, Any]) -> None:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Update the given fields; None leaves a field as it is."""
        cls._check(fields)
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        _context.set(merged)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    def bind(cls, **fields: str | None) -> contextlib.AbstractContextManager:
        """
        Set fields for the duration of a ``with`` block.

        Unknown field names raise TypeError here, before the block is
        entered.  Previous values come back on exit, even on error.
        """
        cls._check(fields)
        return cls._bound(fields)

    @classmethod
    @contextlib.contextmanager
    def _bound(cls, fields: dict[str, str | None]) -> Iterator[type["LogContext"]]:
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return repr(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(self._extras(record, payload))
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _extras(record: logging.LogRecord, taken: dict[str, Any]) -> dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in taken
        }

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # Kernel errors keep their identifiers as public attributes.
        for attr, value in vars(exc).items():
            if attr != "code" and not attr.startswith("_"):
                fields[f"exc_{attr}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_setup_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``revision_kernel`` logger once per process."""
    global _installed_handler
    with _setup_lock:
        if _installed_handler is not None:
            return
        _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)

    _installed_handler.setFormatter(StructuredFormatter())
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.propagate = False
    namespace_logger.addHandler(_installed_handler)


def reset_logging() -> None:
    """Undo ``configure_logging``; used by tests."""
    global _installed_handler
    with _setup_lock:
        _installed_handler = None
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(logging.WARNING)
