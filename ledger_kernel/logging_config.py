"""
Structured logging for the ledger kernel.

Every record is emitted as one JSON object per line.  Request-scoped
identifiers (tenant, actor, entry, payment, document) are carried in a
ContextVar so that services deep in a call stack tag their records without
threading the ids through every signature.

Record layout:
    ts, level, logger, message      always present
    <context fields>                whatever LogContext currently holds
    <extra fields>                  keys passed via ``extra=``; a context
                                    field of the same name takes precedence
    exc_*, traceback                when logged with exc_info
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

ROOT_LOGGER_NAME = "ledger_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "tenant_id",
    "actor_id",
    "entry_id",
    "payment_id",
    "document_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("ledger_log_context", default={})


def _filtered(values: dict[str, Any]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in values.items()
        if name in CONTEXT_FIELDS and value is not None
    }


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks.

    The stored mapping is replaced, never mutated, so a value set in one
    context cannot leak into another.
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Merge ``fields`` into the context; None values are left alone."""
        _context.set({**_context.get(), **_filtered(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set ``fields`` for the duration of a ``with`` block.

        Names outside CONTEXT_FIELDS are ignored.
        """
        token = _context.set({**_context.get(), **_filtered(fields)})
        try:
            yield cls
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON line per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_to_json)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # LedgerKernelError subclasses keep their context as public attributes
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger named ``ledger_kernel.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_state_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``ledger_kernel`` logger.

    Only the first call has an effect until reset_logging() is called.
    """
    global _installed_handler
    with _state_lock:
        if _installed_handler is not None:
            return
        _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)

    _installed_handler.setFormatter(StructuredFormatter())
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.propagate = False
    root.addHandler(_installed_handler)


def reset_logging() -> None:
    """Drop all handlers and allow configure_logging() again. Tests only."""
    global _installed_handler
    with _state_lock:
        _installed_handler = None
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
