"""
Structured logging for persistlog.

Log events are emitted through structlog and routed into the standard library
logging tree, so levels and handlers are controlled in one place. Output is
either human-readable console lines or one JSON object per line.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("console", "json")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag every entry with the application name."""
    event_dict["app"] = "persistlog"
    return event_dict


def parse_log_level(log_level: str) -> int:
    """
    Convert a level name to its numeric value.

    Args:
        log_level: Level name, case-insensitive

    Returns:
        Numeric logging level

    Raises:
        ValueError: If the name is not a known level
    """
    name = str(log_level).strip().upper()
    if name not in LOG_LEVELS:
        raise ValueError(
            f"Unknown log level {log_level!r}, expected one of {', '.join(LOG_LEVELS)}"
        )
    return logging.getLevelName(name)


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    raise ValueError(
        f"Unknown log format {log_format!r}, expected one of {', '.join(LOG_FORMATS)}"
    )


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    log_output: str = "stderr",
) -> None:
    """
    Configure structured logging.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: console or json
        log_output: stdout or stderr

    Raises:
        ValueError: If the level or format is not recognised
    """
    level = parse_log_level(log_level)
    renderer = _renderer(log_format)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout if log_output == "stdout" else sys.stderr,
        level=level,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            add_app_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)
