"""
Prometheus metrics module for TutorHub.

Service operations are measured through ``@BaseService.measure_operation`` and
recorded here; ledger and booking flows add a few domain counters on top.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so test runs and multiple app instances do not collide
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "tutorhub_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "tutorhub_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutorhub_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

ledger_entries_total = Counter(
    "tutorhub_ledger_entries_total",
    "Unified transaction rows written, by wallet type and transaction type",
    ["wallet_type", "transaction_type"],
    registry=REGISTRY,
)

payout_transitions_total = Counter(
    "tutorhub_payout_transitions_total",
    "Payout request state transitions",
    ["status"],  # pending | approved | declined | paid
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "tutorhub_booking_lock_total",
    "Per-teacher booking lock outcomes",
    ["action", "outcome"],
    registry=REGISTRY,
)

modifications_expired_total = Counter(
    "tutorhub_booking_modifications_expired_total",
    "Booking modification requests moved to expired",
    registry=REGISTRY,
)

webhook_events_total = Counter(
    "tutorhub_webhook_events_total",
    "Webhook events received by gateway and outcome",
    ["gateway", "outcome"],  # processed | ignored | duplicate | failed
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

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
            service: Service name (e.g., 'WalletService')
            operation: Operation/method name (e.g., 'fund_child_wallet')
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
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_ledger_entry(wallet_type: str, transaction_type: str) -> None:
        ledger_entries_total.labels(
            wallet_type=wallet_type, transaction_type=transaction_type
        ).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_payout_transition(status: str) -> None:
        payout_transitions_total.labels(status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_total.labels(action=action, outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_modifications_expired(count: int) -> None:
        if count > 0:
            modifications_expired_total.inc(count)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_webhook_event(gateway: str, outcome: str) -> None:
        webhook_events_total.labels(gateway=gateway, outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is None or ts is None or (now - ts) > PrometheusMetrics._cache_ttl_seconds:
                payload = cast(bytes, generate_latest(REGISTRY))
                PrometheusMetrics._cache_payload = payload
                PrometheusMetrics._cache_ts = now
        return payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
