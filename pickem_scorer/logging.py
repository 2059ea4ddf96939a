"""
Structlog setup for the scoring worker and scheduler.

Every line is one JSON object on stdout. Besides the service/environment
fields bound on ``logger``, anything bound through ``structlog.contextvars``
(the scheduled tasks bind ``job``) rides along, so a grading failure deep in
the persistence layer still says which beat job it happened under.
"""

from __future__ import annotations

import logging

import structlog

from .config import settings

SERVICE_NAME = "pickem-scorer"

# Default level when LOG_LEVEL is unset
DEFAULT_LEVELS = {"production": logging.INFO, "staging": logging.INFO}

# Chatty client libraries; httpx logs every provider request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def resolve_log_level(level: str | None, environment: str) -> int:
    """LOG_LEVEL by name or number; unknown names fall back to INFO."""
    if not level or not level.strip():
        return DEFAULT_LEVELS.get(environment.lower(), logging.DEBUG)
    value = level.strip().upper()
    if value.isdigit():
        return int(value)
    return logging.getLevelNamesMapping().get(value, logging.INFO)


def configure_logging() -> None:
    level = resolve_log_level(settings.log_level, settings.environment)
    logging.basicConfig(level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.EventRenamer("message"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


configure_logging()

logger = structlog.get_logger(SERVICE_NAME).bind(
    service=SERVICE_NAME,
    environment=settings.environment,
)
