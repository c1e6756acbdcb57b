"""Shared utilities for the decision engines."""

from utils.logging import LogContext, configure_logging, get_logger
from utils.retry import with_retry
from utils.timeout import bounded_call

__all__ = [
    # Logging
    "LogContext",
    "configure_logging",
    "get_logger",
    # Store call timeouts
    "bounded_call",
    # Store bootstrap
    "with_retry",
]
