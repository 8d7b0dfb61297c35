"""OpenTelemetry instrumentation for webhook-service.

Activated only when ``otel_exporter_endpoint`` is set in settings. Delivery code
uses :func:`get_tracer`, which is a no-op tracer while tracing is disabled.
"""
from __future__ import annotations

import structlog
from aiohttp import web

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.aiohttp_server import AioHttpServerInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from webhook_service.settings import settings

logger = structlog.get_logger(__name__)

_provider: TracerProvider | None = None


def setup_otel(app: web.Application) -> bool:
    """Install the OTLP tracer provider if configured. Returns whether it did."""
    global _provider

    endpoint = settings.otel_exporter_endpoint
    if not endpoint:
        logger.info("otel_exporter_endpoint not set, OpenTelemetry tracing disabled")
        return False

    resource = Resource.create({SERVICE_NAME: settings.app_name})
    _provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=f"{str(endpoint).rstrip('/')}/v1/traces")
    _provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(_provider)

    AioHttpServerInstrumentor().instrument(server=app)
    app.on_cleanup.append(shutdown_otel)

    logger.info("OpenTelemetry tracing enabled", endpoint=str(endpoint))
    return True


async def shutdown_otel(_app: web.Application) -> None:
    """Flush pending spans on application shutdown."""
    global _provider
    if _provider is not None:
        _provider.shutdown()
        _provider = None
        logger.info("OpenTelemetry tracer provider shut down")


def get_tracer(name: str = __name__) -> trace.Tracer:
    return trace.get_tracer(name)
