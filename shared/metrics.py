"""
Shared metrics configuration for the Catalog Gateway.
"""

import threading
from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info


class MetricsCollector:
    """Centralized metrics collector for a service.

    Each collector owns its registry so several service instances (tests,
    reloads) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        # Catalog specific
        self._metrics["cache_requests_total"] = Counter(
            "cache_requests_total",
            "Result cache lookups by outcome",
            ["cache_type", "result"],
            registry=self.registry
        )

        self._metrics["preload_total"] = Counter(
            "preload_total",
            "Preload decisions per entity type",
            ["entity_type", "outcome"],
            registry=self.registry
        )

        self._metrics["backend_requests_total"] = Counter(
            "backend_requests_total",
            "Backend catalog calls",
            ["service", "operation", "result"],
            registry=self.registry
        )

        self._metrics["backend_request_duration_seconds"] = Histogram(
            "backend_request_duration_seconds",
            "Backend catalog call duration in seconds",
            ["service", "operation"],
            registry=self.registry
        )

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        with self._lock:
            if metric_name in self._metrics:
                metric = self._metrics[metric_name]
                if labels:
                    metric.labels(**labels).inc()
                else:
                    metric.inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        with self._lock:
            if metric_name in self._metrics:
                metric = self._metrics[metric_name]
                if labels:
                    metric.labels(**labels).observe(value)
                else:
                    metric.observe(value)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self.increment_counter(
            "http_requests_total",
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        )
        self.observe_histogram(
            "http_request_duration_seconds",
            duration,
            method=method,
            endpoint=endpoint
        )

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self.increment_counter("health_check_total", status=status)

    def record_error(self, error_type: str):
        """Record error metrics."""
        self.increment_counter("errors_total", error_type=error_type, service=self.service_name)

    def record_cache(self, cache_type: str, result: str):
        """Record a cache outcome: hit, miss, error or bypass."""
        self.increment_counter("cache_requests_total", cache_type=cache_type, result=result)

    def record_preload(self, entity_type: str, outcome: str):
        """Record which preload branch served a request."""
        self.increment_counter("preload_total", entity_type=entity_type, outcome=outcome)

    def record_backend_call(self, service: str, operation: str, result: str, duration: float):
        """Record a backend call outcome and latency."""
        self.increment_counter("backend_requests_total", service=service, operation=operation, result=result)
        self.observe_histogram("backend_request_duration_seconds", duration, service=service, operation=operation)
