"""Structured logging configuration.

Features:
- JSON and text format support
- Service context injection
- Store call timing helpers
"""

import logging
import sys
from contextlib import AbstractContextManager
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, Processor

from simple_redis.config import LogFormat, LogLevel, get_settings


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add service context to log events."""
    settings = get_settings()
    event_dict["service"] = settings.app_name
    event_dict["environment"] = settings.environment.value
    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO 8601 timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def setup_logging(
    service_name: str | None = None,
    log_level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        service_name: Logger name to raise to the configured level
        log_level: Override log level (defaults to settings.log_level)
        log_format: Override log format (defaults to settings.log_format)
    """
    settings = get_settings()

    level = log_level or settings.log_level
    fmt = log_format or settings.log_format

    level_str = level.value if hasattr(level, "value") else str(level).upper()
    numeric_level = getattr(logging, level_str)

    logging.basicConfig(
        level=numeric_level,
        stream=sys.stdout,
        format="%(message)s",
    )
    if service_name:
        logging.getLogger(service_name).setLevel(numeric_level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_service_context,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    fmt_str = fmt.value if hasattr(fmt, "value") else str(fmt).lower()
    if fmt_str == LogFormat.JSON.value:
        # JSON format for production
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Text format for development
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # redis-py logs every reconnect at warning level
    logging.getLogger("redis").setLevel(logging.ERROR)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (defaults to module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_prefix(prefix: str) -> AbstractContextManager[None]:
    """Bind the active key prefix to every log event in the block.

    Usage:
        with bind_prefix("app1:"):
            logger.info("Subscribed to channel")  # Includes prefix="app1:"
    """
    return structlog.contextvars.bound_contextvars(prefix=prefix)


def log_store_call_end(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    prefix: str,
    success: bool,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Log completion of a Redis command issued by the client."""
    log_data = {
        "store_operation": operation,
        "prefix": prefix,
        "success": success,
        "duration_ms": round(duration_ms, 2),
    }
    if error:
        log_data["error"] = error

    if success:
        logger.debug("Store call completed", **log_data)
    else:
        logger.warning("Store call failed", **log_data)


def log_connect_attempt(
    logger: structlog.stdlib.BoundLogger,
    role: str,
    attempt: int,
    delay_seconds: float,
    error: str,
) -> None:
    """Log a failed connect attempt that will be retried."""
    logger.warning(
        "Redis connect attempt failed, retrying",
        connection_role=role,
        attempt=attempt,
        retry_in_seconds=round(delay_seconds, 3),
        error=error,
    )
