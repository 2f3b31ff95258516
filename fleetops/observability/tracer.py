"""
OpenTelemetry tracing configuration for FleetOps Core.

Spans wrap reconciliation passes, vehicle sync passes, alert fetches
and every backend request.
"""

from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from fleetops.config import settings


def setup_tracing() -> None:
    """
    Configure OpenTelemetry tracing.

    Sets up:
    - TracerProvider with service resource
    - OTLP exporter when an endpoint is configured
    - Console exporter otherwise
    """
    if not settings.enable_tracing:
        return

    resource = Resource.create({
        "service.name": settings.otel_service_name,
        "service.version": "0.1.0",
        "deployment.environment": settings.app_env,
    })

    provider = TracerProvider(resource=resource)

    if settings.otel_exporter_otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint))
        )
    else:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)


def get_tracer(name: str = __name__) -> Tracer:
    """Get a tracer instance."""
    return trace.get_tracer(name)


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """
    Context manager for tracing operations.

    Args:
        name: Operation name for the span
        attributes: Optional attributes to add to span

    Example:
        with trace_operation("auto_sync.reconcile", {"trigger": "validation_etapes"}) as span:
            summary = await sync_service.sync_all_vehicles()
            span.set_attribute("vehicles", summary.total)
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, str(value))
        try:
            yield span
            span.set_status(Status(StatusCode.OK))
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
