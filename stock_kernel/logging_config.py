"""
Structured JSON logging for the stock kernel.

Every record is one JSON object per line:

    {"ts": ..., "level": ..., "logger": "stock_kernel.services.stock_ledger",
     "message": "stock_level_changed", "tenant_id": ..., "correlation_id": ...,
     "previous_quantity": 10, "new_quantity": 7, ...}

Messages are stable event names (``stock_level_changed``,
``sale_deduction_rejected``); details go in ``extra``.  Request-scoped
fields (tenant, actor, correlation, reference) come from LogContext, which
InventoryOperations binds once per call.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from enum import Enum
from typing import Any, TextIO
from uuid import UUID

ROOT_LOGGER = "stock_kernel"

CONTEXT_FIELDS: tuple[str, ...] = ("tenant_id", "actor_id", "correlation_id", "reference_id")

_context: ContextVar[dict[str, str] | None] = ContextVar("stock_log_context", default=None)


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Log enrichment only: ledger services never read the tenant from here,
    it is always passed explicitly.
    """

    @staticmethod
    def _current() -> dict[str, str]:
        return _context.get() or {}

    @staticmethod
    def _merged(fields: dict[str, str | None]) -> dict[str, str]:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
        merged = dict(LogContext._current())
        merged.update({k: v for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Update context fields.  None values leave the field unchanged."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._current())

    @classmethod
    def clear(cls) -> None:
        _context.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        detail_code = getattr(exc, "detail_code", code)
        if detail_code != code:
            fields["exc_detail_code"] = detail_code
    # Kernel exceptions expose their context as public attributes
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

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
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``stock_kernel`` namespace, e.g. ``services.stock_ledger``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``stock_kernel`` logger.

    Idempotent: only the first call in a process has an effect.  ``level``
    accepts a number or a name such as ``"DEBUG"``.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

        kernel_logger = logging.getLogger(ROOT_LOGGER)
        kernel_logger.setLevel(level.upper() if isinstance(level, str) else level)
        kernel_logger.propagate = False

        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        kernel_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` again.  Test use only."""
    global _configured
    with _configure_lock:
        _configured = False
        kernel_logger = logging.getLogger(ROOT_LOGGER)
        for existing in list(kernel_logger.handlers):
            kernel_logger.removeHandler(existing)
        kernel_logger.setLevel(logging.WARNING)
