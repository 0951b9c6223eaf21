"""Context management for structured logging.

Request-scoped fields (correlation id, session id, module, operation) are kept
in a ContextVar so every log record emitted while resolving a field carries
them without explicit passing. Each asyncio task and thread sees its own copy.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        set_log_context(correlation_id="abc-123", session_id="s-1")
        logger.info("Resolving field")  # Includes correlation_id and session_id
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Drop all logging context for the current task."""
    _log_context.set({})


def remove_from_log_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that copies the log context onto each LogRecord.

    Attributes already present on the record (e.g. passed via ``extra``) are
    never overwritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


__all__ = [
    "ContextInjectingFilter",
    "clear_log_context",
    "get_log_context",
    "remove_from_log_context",
    "set_log_context",
]
