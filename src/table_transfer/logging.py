"""
Structured logging setup
"""

import logging
import sys

import structlog


def configure_logging(log_level: str = "INFO", log_format: str = "console", color: bool = True) -> None:
    """Configure structlog for the command line tool.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "console" for people, "json" for log collectors
        color: Whether to use colors in console mode
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=color),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Libraries such as psycopg log through the standard library
    logging.basicConfig(
        format="%(message)s",
        level=max(level, logging.WARNING),
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
