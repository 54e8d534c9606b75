"""
Prometheus metrics for the lounge booking engine.

Service timings come from BaseService.measure_operation; cache and booking
outcome counters are recorded by the services directly.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "lounge_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "lounge_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "lounge_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

cache_requests_total = Counter(
    "lounge_cache_requests_total",
    "Cache lookups by namespace and result",
    ["namespace", "result"],
    registry=REGISTRY,
)

booking_submissions_total = Counter(
    "lounge_booking_submissions_total",
    "Booking submissions by outcome",
    ["outcome"],
    registry=REGISTRY,
)

degraded_reads_total = Counter(
    "lounge_degraded_reads_total",
    "Reads that failed open because the store was unavailable",
    ["operation"],
    registry=REGISTRY,
)

status_transitions_total = Counter(
    "lounge_booking_status_transitions_total",
    "Booking status transitions applied",
    ["to_status", "actor"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: str | None = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'submit_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_cache_lookup(namespace: str, hit: bool) -> None:
        cache_requests_total.labels(namespace=namespace, result="hit" if hit else "miss").inc()

    @staticmethod
    def record_booking_submission(outcome: str) -> None:
        booking_submissions_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_degraded_read(operation: str) -> None:
        degraded_reads_total.labels(operation=operation).inc()

    @staticmethod
    def record_status_transition(to_status: str, actor: str) -> None:
        status_transitions_total.labels(to_status=to_status, actor=actor).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
