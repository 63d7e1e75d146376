"""
Prometheus metrics for the reservation engine.

Service timings come from the @measure_operation decorator; session
transitions, slot-lock outcomes and sweep results are recorded directly by
the code that performs them.
"""

from typing import Optional, cast

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
    "mentorslot_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "mentorslot_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "mentorslot_errors_total",
    "Total number of errors by type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

session_transitions_total = Counter(
    "mentorslot_session_transitions_total",
    "Session state transitions",
    ["from_status", "to_status"],
    registry=REGISTRY,
)

slot_conflicts_total = Counter(
    "mentorslot_slot_conflicts_total",
    "Booking attempts rejected because the window was taken",
    ["stage"],
    registry=REGISTRY,
)

slot_lock_events_total = Counter(
    "mentorslot_slot_lock_events_total",
    "Per-mentor booking mutex outcomes",
    ["action", "outcome"],
    registry=REGISTRY,
)

expiry_sweep_sessions_total = Counter(
    "mentorslot_expiry_sweep_sessions_total",
    "Sessions expired by sweeps",
    ["trigger"],
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
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'ReservationService')
            operation: Operation/method name (e.g., 'create_session')
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
    def record_session_transition(from_status: str, to_status: str) -> None:
        session_transitions_total.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_slot_conflict(stage: str) -> None:
        """stage: 'precheck' (calculator said taken) or 'constraint' (unique index fired)."""
        slot_conflicts_total.labels(stage=stage).inc()

    @staticmethod
    def record_slot_lock(action: str, outcome: str) -> None:
        slot_lock_events_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_sweep(trigger: str, count: int) -> None:
        if count > 0:
            expiry_sweep_sessions_total.labels(trigger=trigger).inc(count)

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return str(CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
