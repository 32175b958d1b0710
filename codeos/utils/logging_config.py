"""
Logging configuration using structlog for structured, JSON-based logging.

Logs go to stderr so that they never interleave with the CLI's own output on
stdout. The run engine does not read this configuration: it receives a logger
explicitly and falls back to ``null_logger()``.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging with JSON output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Raises:
        ValueError: If the level name is unknown
    """
    level = logging.getLevelNamesMapping().get(log_level.upper())
    if level is None:
        raise ValueError(f"Unknown log level: {log_level}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a logger instance.

    Args:
        name: Optional logger name (typically __name__ from calling module)

    Returns:
        A structlog logger instance

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("step_started", run_id=run.id, step=0)
    """
    return structlog.get_logger(name)


def _drop_event(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    raise structlog.DropEvent


def null_logger() -> Any:
    """Logger that discards every event.

    Used as the engine's default so that it carries no dependency on global
    logging configuration.
    """
    return structlog.wrap_logger(structlog.ReturnLogger(), processors=[_drop_event])
