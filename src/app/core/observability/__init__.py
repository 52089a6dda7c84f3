"""OpenTelemetry tracing."""

from app.core.observability.tracing import setup_tracing, shutdown_tracing


__all__ = ["setup_tracing", "shutdown_tracing"]
