"""
Structured logging configuration using structlog.
Provides event-scoped logging with block/transaction context binding.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from indexer.config import get_settings


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add severity level for structured logging."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def configure_logging() -> None:
    """
    Configure structured logging for the application.
    Uses JSON format in production, console format in development.
    """
    settings = get_settings()

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    # Choose renderer based on environment
    if settings.log_format == "json" and not settings.dev_mode:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_severity,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_event_context(event_id: str, kind: str, block_number: int) -> None:
    """
    Bind the event being reduced to every log line emitted until cleared.

    Args:
        event_id: Event identity (tx hash + log index)
        kind: Event kind value
        block_number: Block the event was emitted in
    """
    structlog.contextvars.bind_contextvars(
        event_id=event_id, event_kind=kind, block_number=block_number
    )


def clear_event_context() -> None:
    """Drop the bound event context, leaving other bound keys in place."""
    structlog.contextvars.unbind_contextvars("event_id", "event_kind", "block_number")
