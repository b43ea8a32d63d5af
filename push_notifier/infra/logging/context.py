"""Context management for structured logging.

Log context lives in a ContextVar, so every asyncio task gets its own copy.
The dispatch engine sets ``path`` when a notification arrives and the push
channel sets ``subscriber_id`` per recipient; every log line emitted below
that point carries those fields without passing them around explicitly.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(path="notifications.engine.overTemp")
        logger.info("Dispatching")  # record carries path=...
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Logging filter that copies the current log context onto each record.

    Installed on the queue handler by ``configure_logging`` so formatters
    (especially JSONFormatter) see the context fields as record attributes.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject context into log record; never drops the record."""
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class ContextBoundLogger(logging.LoggerAdapter):
    """Logger adapter with permanently bound context.

    Example:
        ```python
        logger = get_logger(__name__, channel="push")
        logger.warning("Send failed", extra={"subscriber_id": "abcd1234"})
        ```
    """

    def __init__(self, logger: logging.Logger, **context: Any) -> None:
        super().__init__(logger, context)

    def bind(self, **context: Any) -> ContextBoundLogger:
        """Create new logger with additional bound context."""
        return ContextBoundLogger(self.logger, **{**self.extra, **context})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Merge bound context with any extra fields passed to the log call."""
        extra = kwargs.get("extra", {})
        kwargs["extra"] = {**self.extra, **extra}
        return msg, kwargs


def get_logger(name: str, **context: Any) -> ContextBoundLogger:
    """Get logger with bound context.

    Args:
        name: Logger name.
        **context: Context to add to all log messages.

    Returns:
        Logger adapter with context.
    """
    return ContextBoundLogger(logging.getLogger(name), **context)
