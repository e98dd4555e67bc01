"""Structured logging configuration for retail sales audit runs."""

import logging
import sys
from typing import Literal

import structlog

logger = structlog.get_logger(__name__)


def configure_logging(
    level: str = "INFO",
    renderer: Literal["json", "console"] = "json",
) -> None:
    """Configure structlog for audit runs.

    Logs are written to stderr so stdout stays free for whatever the
    calling job exports.

    Args:
        level: Minimum log level name (DEBUG, INFO, WARNING, ...)
        renderer: ``"json"`` for machine-readable lines, ``"console"`` for
                  human-readable development output
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    # Library modules log through stdlib logging
    logging.basicConfig(level=numeric_level, stream=sys.stderr, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if renderer == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )

    logger.info("logging_configured", level=level.upper(), renderer=renderer)
