"""OpenTelemetry tracing configuration."""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
)

from coordinator.config import ObservabilitySettings


def setup_tracing(settings: ObservabilitySettings) -> TracerProvider | None:
    """Configure OpenTelemetry tracing with a console exporter."""
    if not settings.tracing_enabled:
        return None

    resource = Resource.create({
        SERVICE_NAME: settings.service_name,
        SERVICE_VERSION: "1.0.0",
    })

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    return provider


def get_tracer(name: str = "coordinator") -> trace.Tracer:
    """Get a tracer instance. A no-op tracer until setup_tracing runs."""
    return trace.get_tracer(name)
