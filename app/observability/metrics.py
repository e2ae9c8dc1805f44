"""
Metrics Collection with Prometheus.

Exposes receipt validation and HTTP metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from app.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    ENVIRONMENT = "environment"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class ReceiptMetrics:
    """
    Centralized metrics for the receipt relay.

    Covers:
    - HTTP requests (rate, duration, in progress)
    - Receipt validations (outcome per environment)
    - Upstream verifyReceipt calls (duration per environment)
    - Sandbox redirects
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "receipt_relay_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "receipt_relay_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "receipt_relay_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "receipt_relay_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Receipt Validation Metrics
        # ====================================================================
        self.receipt_validations_total = Counter(
            "receipt_relay_validations_total",
            "Total receipt validations by final environment and outcome",
            [MetricLabels.ENVIRONMENT, MetricLabels.OUTCOME],
        )

        self.upstream_request_duration_seconds = Histogram(
            "receipt_relay_upstream_request_duration_seconds",
            "verifyReceipt call duration in seconds",
            [MetricLabels.ENVIRONMENT],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.sandbox_redirects_total = Counter(
            "receipt_relay_sandbox_redirects_total",
            "Production attempts redirected to sandbox (status 21007)",
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "receipt_relay_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_validation(self, environment: str, outcome: str) -> None:
        """Record a finished receipt validation (valid, rejected, error)."""
        self.receipt_validations_total.labels(environment=environment, outcome=outcome).inc()

    def record_upstream_call(self, environment: str, duration: float) -> None:
        """Record one verifyReceipt round trip."""
        self.upstream_request_duration_seconds.labels(environment=environment).observe(duration)

    def record_sandbox_redirect(self) -> None:
        """Record a 21007 redirect to sandbox."""
        self.sandbox_redirects_total.inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = ReceiptMetrics()
