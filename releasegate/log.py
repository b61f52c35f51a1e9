"""
Structured logging setup.

Every module logs through ``structlog.get_logger(__name__)`` with snake_case
event names and keyword context. This module wires structlog onto stdlib
logging once, at process start.
"""

import logging
import sys

import structlog

from releasegate.config import settings
from releasegate.exceptions import ConfigurationError

LOG_FORMATS = ("console", "json")


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Configure stdlib logging + structlog.

    Args:
        level: Log level name (defaults to settings.log_level)
        fmt: "json" for machine-readable output, "console" for humans

    Raises:
        ConfigurationError: unknown level or format
    """
    level_name = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()

    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ConfigurationError(f"Unknown log level: {level_name}", details={"level": level_name})
    if fmt not in LOG_FORMATS:
        raise ConfigurationError(f"Unknown log format: {fmt}", details={"format": fmt})
    render_json = fmt == "json"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if render_json
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
