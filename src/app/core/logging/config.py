"""structlog configuration shared by the API process and the worker."""

import logging

import structlog

from app.config import settings


def configure_logging() -> None:
    """Configure structlog and route stdlib logging through the same level.

    Production emits JSON lines; other environments use the console
    renderer. Context bound with ``structlog.contextvars`` (request id,
    tenant id, user id) is merged into every event.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.is_production
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
