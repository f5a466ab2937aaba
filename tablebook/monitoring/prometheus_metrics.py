"""
Prometheus metrics for the Tablebook engine.

Service timings come from ``@BaseService.measure_operation``; the domain
counters are bumped by the booking, reconciliation and redemption services.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so tests and multiple app instances do not collide
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "tablebook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "tablebook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tablebook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

bookings_total = Counter(
    "tablebook_bookings_total",
    "Booking lifecycle events",
    ["event"],  # created | cancelled | confirmed
    registry=REGISTRY,
)

reconciliations_total = Counter(
    "tablebook_reconciliations_total",
    "Payment notifications by reconciliation outcome",
    ["outcome"],  # success | no_match | ambiguous_match
    registry=REGISTRY,
)

store_retries_total = Counter(
    "tablebook_store_retries_total",
    "Transactions replayed after transient store contention",
    ["operation"],
    registry=REGISTRY,
)

side_effect_failures_total = Counter(
    "tablebook_side_effect_failures_total",
    "Best-effort side effects that failed after commit",
    ["kind"],  # calendar_create | calendar_delete | email | door
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_booking_event(event: str, count: int = 1) -> None:
        bookings_total.labels(event=event).inc(count)

    @staticmethod
    def inc_reconciliation(outcome: str) -> None:
        reconciliations_total.labels(outcome=outcome).inc()

    @staticmethod
    def inc_store_retry(operation: str) -> None:
        store_retries_total.labels(operation=operation).inc()

    @staticmethod
    def inc_side_effect_failure(kind: str) -> None:
        side_effect_failures_total.labels(kind=kind).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
