"""Logging configuration for the Warehouse domain.

Modules log through ``structlog.get_logger(__name__)``. ``configure_logging``
is called once by the HTTP application; tests run on structlog's defaults.
"""

import logging
import os
import sys

import structlog

logger = structlog.get_logger(__name__)

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}


def get_log_level() -> str:
    """Log level for the current environment; ``LOG_LEVEL`` wins when set."""
    env = (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()
    return os.getenv("LOG_LEVEL", _LEVELS.get(env, "INFO")).upper()


def configure_logging() -> None:
    level = get_log_level()
    logging.basicConfig(stream=sys.stdout, level=level, format="%(message)s", force=True)

    # Suppress noisy library loggers
    logging.getLogger("protean").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    env = os.getenv("ENVIRONMENT", "development").lower()
    renderer = (
        structlog.processors.JSONRenderer()
        if env in ("production", "staging")
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.contextvars.merge_contextvars,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
