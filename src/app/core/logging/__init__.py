"""Structured logging setup and request logging."""

from app.core.logging.config import configure_logging
from app.core.logging.middleware import RequestLoggingMiddleware


__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
]
