"""
Shared metrics configuration for the parcel routing service.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for the routing service."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_routing_metrics()

    def _setup_routing_metrics(self):
        """Set up routing-specific metrics."""
        self._metrics["rule_evaluations_total"] = Counter(
            "rule_evaluations_total",
            "Total weight-bucket rule evaluations",
            ["result"],
            registry=self.registry
        )

        self._metrics["rule_evaluation_duration_seconds"] = Histogram(
            "rule_evaluation_duration_seconds",
            "Rule evaluation duration in seconds",
            registry=self.registry
        )

        self._metrics["assignments_total"] = Counter(
            "assignments_total",
            "Department assignments by source",
            ["source"],
            registry=self.registry
        )

        self._metrics["parcels_ingested_total"] = Counter(
            "parcels_ingested_total",
            "Ingested parcel records by classification",
            ["result"],
            registry=self.registry
        )

        self._metrics["cascade_parcels_total"] = Counter(
            "cascade_parcels_total",
            "Parcels visited by rule-change cascades",
            ["result"],
            registry=self.registry
        )

        self._metrics["insurance_decisions_total"] = Counter(
            "insurance_decisions_total",
            "Insurance approval transitions",
            ["status"],
            registry=self.registry
        )

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            metric = self._metrics.get(operation_name)
            if metric is not None:
                (metric.labels(**labels) if labels else metric).observe(duration)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
