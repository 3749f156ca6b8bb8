"""structlog setup shared by the CLI scripts and long-running services."""

import logging
import sys

import structlog

from scrapeforge.config import settings


def configure_logging(level: str = None, json_output: bool = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
        json_output: Render JSON lines instead of the console renderer,
            defaults to settings.LOG_JSON
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    if json_output is None:
        json_output = settings.LOG_JSON

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
