"""
utils/logging.py — structlog configuration for the sync job.

JSON output (production) or coloured console output (development) is chosen
by settings.log_format. The CLI calls configure_logging() once before any
command runs; library loggers (httpx, apscheduler, googleapiclient) are
routed through the standard logging module at WARNING unless DEBUG is on.

Usage:
    from wbtariffs_pipeline.utils.logging import configure_logging, get_logger

    configure_logging()
    log = get_logger(__name__, component="scheduler")
    log.info("job_scheduled", job="tariff-sync", cron="0 * * * *")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from wbtariffs_shared.config import settings

# Chatty third-party loggers that only matter when debugging
_NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler", "googleapiclient", "hpack")


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog and stdlib logging for the process. Idempotent.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = log_format or settings.log_format

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(app_env=settings.app_env)


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Return a structlog logger, optionally bound to initial context values.

    Args:
        name:             Logger name (conventionally the module __name__).
        **initial_values: Key-value pairs merged into every log record.
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[return-value]
