from __future__ import annotations

from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from app.core.config import get_settings
from app.middleware.correlation_id import CORRELATION_ID_HEADER


SERVICE_VERSION = "0.1.0"

_console_attached = False
_provider: TracerProvider | None = None


def _get_or_create_provider(service_name: str) -> TracerProvider:
    global _provider

    if _provider is not None:
        return _provider

    settings = get_settings()
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": SERVICE_VERSION,
            "deployment.environment": settings.app_env,
        }
    )
    _provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(_provider)
    return _provider


def setup_otel(service_name: str) -> TracerProvider | None:
    """Install the process-wide tracer provider when tracing is enabled in settings."""

    global _console_attached

    settings = get_settings()
    if not settings.otel_enabled:
        return None

    provider = _get_or_create_provider(service_name)
    if settings.otel_console_exporter and not _console_attached:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        _console_attached = True
    return provider


def setup_inmemory_otel(service_name: str = "api") -> InMemorySpanExporter:
    provider = _get_or_create_provider(service_name)
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def get_tracer(name: str) -> trace.Tracer:
    # Proxy tracer; binds to the provider once one is installed.
    return trace.get_tracer(name, SERVICE_VERSION)


def get_fastapi_server_request_hook():
    header_key = CORRELATION_ID_HEADER.encode("latin-1")

    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        correlation_raw = dict(scope.get("headers", [])).get(header_key)
        if correlation_raw:
            span.set_attribute("correlation_id", correlation_raw.decode("latin-1"))

    return server_request_hook
