"""
Shared metrics configuration for the Skill Request Verifier.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # A private registry per collector keeps services (and tests) isolated.
        self.registry = registry if registry is not None else CollectorRegistry()
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

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "verifier":
            self._setup_verifier_metrics()

    def _setup_verifier_metrics(self):
        """Set up verifier-specific metrics."""
        self._metrics["request_verifications_total"] = Counter(
            "request_verifications_total",
            "Total request verifications",
            ["outcome", "reason"],
            registry=self.registry
        )

        self._metrics["certificate_fetches_total"] = Counter(
            "certificate_fetches_total",
            "Total certificate lookups by source",
            ["source"],
            registry=self.registry
        )

        self._metrics["certificate_fetch_duration_seconds"] = Histogram(
            "certificate_fetch_duration_seconds",
            "Certificate download duration in seconds",
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_verification(self, outcome: str, reason: str = "none"):
        """Record the result of one request verification."""
        self.increment_counter("request_verifications_total", outcome=outcome, reason=reason)

    def record_certificate_fetch(self, source: str, duration: Optional[float] = None):
        """Record a certificate lookup served from `source`."""
        self.increment_counter("certificate_fetches_total", source=source)
        if duration is not None and "certificate_fetch_duration_seconds" in self._metrics:
            self._metrics["certificate_fetch_duration_seconds"].observe(duration)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
