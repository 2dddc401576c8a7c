"""Structured logging configuration."""

import logging
import sys
from typing import Any, TextIO

import structlog

from product_fetch import __version__


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Whether to use JSON format (default: True).
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=output.isatty())
    )

    structlog.configure(
        processors=[*_shared_processors(), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=output, level=level)

    # TransportClient already logs every attempt
    for name in _CHATTY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


_CHATTY_LIBRARY_LOGGERS = ("httpx", "httpcore")


def _add_package_version(
    _logger: Any, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("version", __version__)
    return event_dict


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_package_version,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def parse_log_level(name: str) -> int:
    """Convert a level name such as ``"debug"`` to a logging level.

    Raises:
        ValueError: If the name is not a standard level.
    """
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        msg = f"Unknown log level: {name}"
        raise ValueError(msg)
    return level


def get_logger(name: str | None = None, **initial: Any) -> structlog.stdlib.BoundLogger:
    """Get a bound logger instance.

    Args:
        name: Optional logger name.
        initial: Key-value pairs bound to the logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name, **initial)
    return logger


def bind_subject_context(subject_id: str) -> None:
    """Bind the displayed product to all subsequent log messages."""
    structlog.contextvars.bind_contextvars(subject_id=subject_id)


def clear_subject_context() -> None:
    """Clear the displayed product from log messages."""
    structlog.contextvars.unbind_contextvars("subject_id")
