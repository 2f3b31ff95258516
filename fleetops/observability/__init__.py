"""
FleetOps Core - Observability

Monitoring and tracing capabilities:
- Tracer: OpenTelemetry spans for sync passes and backend calls
- Logger: Structured logging with context
- Metrics: In-process operation metrics
"""

from fleetops.observability.tracer import setup_tracing, get_tracer, trace_operation
from fleetops.observability.logger import setup_logging, get_logger, LogContext
from fleetops.observability.metrics import MetricsCollector, MetricsTimer, metrics_collector

__all__ = [
    "setup_tracing",
    "get_tracer",
    "trace_operation",
    "setup_logging",
    "get_logger",
    "LogContext",
    "MetricsCollector",
    "MetricsTimer",
    "metrics_collector",
]
