"""
Metrics collection for FleetOps Core.

Tracks reconciliation passes, backend calls, alert computations and
session lifecycle events for the /metrics endpoint.
"""

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from fleetops.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OperationMetrics:
    """Metrics for a single operation type."""

    count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: float = float("inf")
    max_duration_ms: float = 0.0
    errors: int = 0

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average duration."""
        return self.total_duration_ms / self.count if self.count > 0 else 0.0

    def record(self, duration_ms: float, error: bool = False) -> None:
        """Record a new operation."""
        self.count += 1
        self.total_duration_ms += duration_ms
        self.min_duration_ms = min(self.min_duration_ms, duration_ms)
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if error:
            self.errors += 1

    def summary(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "min_duration_ms": round(self.min_duration_ms, 2) if self.count > 0 else 0,
            "max_duration_ms": round(self.max_duration_ms, 2),
            "errors": self.errors,
            "error_rate": round(self.errors / self.count * 100, 2) if self.count > 0 else 0,
        }


@dataclass
class MetricsCollector:
    """
    Collects and exposes metrics for the application.

    Tracks:
    - Vehicle reconciliation passes and latency
    - Backend calls per operation (select, update, rpc, ...)
    - Alert computations
    - Session events (started, warned, expired, logout failures)
    """

    sync_metrics: OperationMetrics = field(default_factory=OperationMetrics)
    backend_metrics: dict[str, OperationMetrics] = field(
        default_factory=lambda: defaultdict(OperationMetrics)
    )
    alert_metrics: OperationMetrics = field(default_factory=OperationMetrics)
    session_events: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_sync(self, duration_ms: float, error: bool = False) -> None:
        """Record a reconciliation pass."""
        self.sync_metrics.record(duration_ms, error)
        logger.debug("Sync pass recorded", duration_ms=duration_ms, error=error)

    def record_backend_call(
        self,
        operation: str,
        duration_ms: float,
        error: bool = False,
    ) -> None:
        """Record a backend request."""
        self.backend_metrics[operation].record(duration_ms, error)

    def record_alerts(self, duration_ms: float, error: bool = False) -> None:
        self.alert_metrics.record(duration_ms, error)

    def record_session_event(self, event: str) -> None:
        self.session_events[event] += 1

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of all metrics."""
        return {
            "sync": self.sync_metrics.summary(),
            "backend": {name: m.summary() for name, m in self.backend_metrics.items()},
            "alerts": self.alert_metrics.summary(),
            "sessions": dict(self.session_events),
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self.sync_metrics = OperationMetrics()
        self.backend_metrics.clear()
        self.alert_metrics = OperationMetrics()
        self.session_events.clear()


class MetricsTimer:
    """
    Context manager for timing operations.

    Example:
        with MetricsTimer() as timer:
            await sync_service.sync_all_vehicles()
        metrics_collector.record_sync(timer.duration_ms)
    """

    def __init__(self) -> None:
        self.start_time: float = 0
        self.end_time: float = 0

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds."""
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000

    def __enter__(self) -> "MetricsTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = time.perf_counter()


# Global metrics collector instance
metrics_collector = MetricsCollector()
