"""Observability module for logging."""

from product_fetch.observability.logging import (
    bind_subject_context,
    clear_subject_context,
    configure_logging,
    get_logger,
    parse_log_level,
)


__all__ = [
    "bind_subject_context",
    "clear_subject_context",
    "configure_logging",
    "get_logger",
    "parse_log_level",
]
