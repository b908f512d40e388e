"""Observability module for structured logging."""

from .logging import (
    bind_prefix,
    get_logger,
    log_connect_attempt,
    log_store_call_end,
    setup_logging,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    "bind_prefix",
    # Logging helpers
    "log_store_call_end",
    "log_connect_attempt",
]
