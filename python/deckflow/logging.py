"""Structured logging configuration using structlog.

Provides JSON-formatted logs with consistent context including:
- call_id: Correlation ID for one pipeline call (one request to the provider)
- operation: What the call is for (deck_invoke, deck_repair, chat_stream, ...)
- timestamp: ISO8601 formatted timestamp

Usage:
    from deckflow.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.info("something_happened", extra_field="value")
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Context variables for call-scoped logging
call_id_var: ContextVar[str | None] = ContextVar("call_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def add_call_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Add call context to all log entries.

    Injects all non-None ContextVar values into the log event dict.
    Explicit fields passed by the caller win over context values.
    """
    call_id = call_id_var.get()
    operation = operation_var.get()

    if call_id:
        event_dict.setdefault("call_id", call_id)
    if operation:
        event_dict.setdefault("operation", operation)

    return event_dict


def configure_logging(json_format: bool = True, level: int = logging.INFO) -> None:
    """Configure structlog for the application.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
        level: Root log level.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_call_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Silence noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


def set_call_context(call_id: str | None, operation: str | None = None) -> None:
    """Set call context for the current async context.

    Args:
        call_id: Correlation ID for the current pipeline call.
        operation: Operation name (optional).
    """
    call_id_var.set(call_id)
    if operation is not None:
        operation_var.set(operation)


def clear_call_context() -> None:
    """Clear all call-scoped context."""
    call_id_var.set(None)
    operation_var.set(None)


def get_call_id() -> str | None:
    """Get the current call ID from context."""
    return call_id_var.get()
