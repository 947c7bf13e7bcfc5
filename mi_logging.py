"""structlog configuration shared by every module."""

import logging
import sys

import structlog

import mi_config


def setup_logging(level: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Render key/value events to stderr, dropping those below `level`."""
    name = (level or mi_config.LOG_LEVEL).upper()
    min_level = logging.getLevelName(name)
    if not isinstance(min_level, int):
        min_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger()


logger: structlog.typing.FilteringBoundLogger = setup_logging()
