"""Logging infrastructure.

Structured logging with:
- JSONL format for Loki/Elasticsearch ingestion
- Automatic context injection (path, subscriber_id, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive debug output

Basic usage:
    import logging

    from push_notifier.infra.logging import set_log_context

    logger = logging.getLogger(__name__)

    set_log_context(path="engines.overTemp")
    logger.info("Dispatching notification")  # record includes path
"""

from push_notifier.infra.logging.config import configure_logging, setup_logging, shutdown
from push_notifier.infra.logging.context import (
    ContextBoundLogger,
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)
from push_notifier.infra.logging.formatters import JSONFormatter
from push_notifier.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextBoundLogger",
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "get_logger",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
