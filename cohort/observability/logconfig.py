"""Structured logging setup.

Call ``configure_logging()`` once at process start. Modules then use
``structlog.get_logger()`` for structured events or stdlib
``logging.getLogger(__name__)`` for plain diagnostics.
"""

import logging

import structlog

from cohort.config.settings import Environment, Settings, get_settings

_LOG_NAME_TO_LEVEL: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger from settings."""
    settings = settings or get_settings()
    level = _LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value]

    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == Environment.DEV
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
