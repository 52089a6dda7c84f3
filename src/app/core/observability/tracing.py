"""OpenTelemetry tracing configuration.

FastAPI requests, SQLAlchemy queries and Redis commands are traced when
``OTLP_ENDPOINT`` is set (or, in debug mode, printed to the console).
Without either, tracing stays off and nothing is instrumented.
"""

import structlog
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from app.config import settings
from app.core.database.session import async_engine


log = structlog.get_logger()


def _span_processor() -> SpanProcessor | None:
    if settings.otlp_endpoint:
        exporter = OTLPSpanExporter(
            endpoint=settings.otlp_endpoint,
            insecure=not settings.otlp_endpoint.startswith("https"),
        )
        log.info("tracing_configured", exporter="otlp", endpoint=settings.otlp_endpoint)
        return BatchSpanProcessor(exporter)
    if settings.debug:
        log.info("tracing_configured", exporter="console")
        return BatchSpanProcessor(ConsoleSpanExporter())
    return None


def setup_tracing(app: FastAPI) -> bool:
    """Instrument the app, the database engine and Redis.

    Returns:
        True if tracing was enabled
    """
    processor = _span_processor()
    if processor is None:
        log.info("tracing_disabled", reason="no OTLP_ENDPOINT configured")
        return False

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.app_name.lower().replace(" ", "-"),
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,docs,redoc,openapi.json")
    SQLAlchemyInstrumentor().instrument(engine=async_engine.sync_engine)
    RedisInstrumentor().instrument()
    return True


def shutdown_tracing() -> None:
    """Flush pending spans. Safe to call when tracing is disabled."""
    provider = trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.shutdown()
