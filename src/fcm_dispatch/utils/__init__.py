"""Shared utility modules for logging and secret sanitization.

All utilities are provider agnostic and hold no state beyond the
correlation ID context variable.
"""

from fcm_dispatch.utils.logging import (
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)
from fcm_dispatch.utils.sanitization import (
    REDACTED,
    sanitize_exception,
    sanitize_text,
    sanitize_value,
)

__all__ = [
    "REDACTED",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "log_with_context",
    "sanitize_exception",
    "sanitize_text",
    "sanitize_value",
    "set_correlation_id",
]
