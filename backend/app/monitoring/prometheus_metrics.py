"""
Prometheus metrics for the scheduling engine.

Service timings are fed by the ``@measure_operation`` decorator; booking and
notification counters are recorded at the point the event happens.
"""

from typing import Optional

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
    "expert_sessions_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "expert_sessions_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "expert_sessions_errors_total",
    "Total number of failed service operations by error type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

session_transitions_total = Counter(
    "expert_sessions_session_transitions_total",
    "Session lifecycle transitions",
    ["transition"],
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "expert_sessions_booking_conflicts_total",
    "Booking attempts rejected because the slot was taken",
    ["source"],
    registry=REGISTRY,
)

notifications_outbox_attempt_total = Counter(
    "expert_sessions_notifications_outbox_attempt_total",
    "Notification delivery attempts",
    ["event_type"],
    registry=REGISTRY,
)

notifications_outbox_total = Counter(
    "expert_sessions_notifications_outbox_total",
    "Terminal notification delivery outcomes",
    ["status", "event_type"],
    registry=REGISTRY,
)

notifications_dispatch_seconds = Histogram(
    "expert_sessions_notifications_dispatch_seconds",
    "Notification provider dispatch duration in seconds",
    ["event_type"],
    registry=REGISTRY,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingScheduler')
            operation: Operation/method name (e.g., 'create_session')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Exception class name when the operation failed
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_session_transition(transition: str) -> None:
        session_transitions_total.labels(transition=transition).inc()

    @staticmethod
    def record_booking_conflict(source: str) -> None:
        """Count a rejected booking; ``source`` is 'precheck' or 'constraint'."""
        booking_conflicts_total.labels(source=source).inc()

    @staticmethod
    def record_notification_attempt(event_type: str) -> None:
        """Increment attempt counter for notification outbox delivery."""
        notifications_outbox_attempt_total.labels(event_type=event_type).inc()

    @staticmethod
    def record_notification_outcome(event_type: str, status: str) -> None:
        """Record terminal outcome for notification outbox delivery."""
        notifications_outbox_total.labels(status=status, event_type=event_type).inc()

    @staticmethod
    def observe_notification_dispatch(event_type: str, duration: float) -> None:
        """Observe provider dispatch duration."""
        notifications_dispatch_seconds.labels(event_type=event_type).observe(max(duration, 0.0))

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
