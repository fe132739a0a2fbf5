"""Prometheus metrics definitions and helpers for the ingestion pipeline.

Metric Naming Conventions:
- All metrics are prefixed with 'zonewatch_'
- Counters end with '_total'
- Histograms/durations end with '_seconds'

Usage:
    from zonewatch.core.metrics import record_ingest_outcome, observe_dependency_duration

    record_ingest_outcome("accepted")
    observe_dependency_duration("face_matcher", 0.42)
"""

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

from zonewatch.core.logging import get_logger

logger = get_logger(__name__)

_registry = REGISTRY

INGEST_OUTCOMES = ("accepted", "skipped_cooldown", "skipped_policy", "failed")

# Buckets for external call durations (in seconds), 10ms to 30s
DEPENDENCY_DURATION_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

INGEST_RESULTS_TOTAL = Counter(
    "zonewatch_ingest_results_total",
    "Ingestion calls by terminal result",
    labelnames=["result"],
    registry=_registry,
)

DEPENDENCY_DURATION_SECONDS = Histogram(
    "zonewatch_dependency_duration_seconds",
    "Duration of calls to external collaborators",
    labelnames=["dependency"],
    buckets=DEPENDENCY_DURATION_BUCKETS,
    registry=_registry,
)

DEPENDENCY_FAILURES_TOTAL = Counter(
    "zonewatch_dependency_failures_total",
    "Failed calls to external collaborators",
    labelnames=["dependency", "kind"],
    registry=_registry,
)

RETENTION_EVICTIONS_TOTAL = Counter(
    "zonewatch_retention_evictions_total",
    "Alerts removed by retention enforcement",
    registry=_registry,
)

NOTIFICATIONS_TOTAL = Counter(
    "zonewatch_notifications_total",
    "Notification attempts by outcome",
    labelnames=["outcome"],
    registry=_registry,
)


def record_ingest_outcome(result: str) -> None:
    """Increment the ingestion results counter.

    Args:
        result: One of INGEST_OUTCOMES
    """
    if result not in INGEST_OUTCOMES:
        logger.warning(f"Unknown ingest outcome for metrics: {result}")
        return
    INGEST_RESULTS_TOTAL.labels(result=result).inc()


def observe_dependency_duration(dependency: str, duration_seconds: float) -> None:
    """Record the duration of an external call.

    Args:
        dependency: Name of the collaborator ("face_matcher", "object_store", "notifier")
        duration_seconds: Duration in seconds
    """
    DEPENDENCY_DURATION_SECONDS.labels(dependency=dependency).observe(duration_seconds)


def record_dependency_failure(dependency: str, kind: str) -> None:
    """Increment the dependency failures counter.

    Args:
        dependency: Name of the collaborator
        kind: Failure kind (e.g., "timeout", "unavailable")
    """
    DEPENDENCY_FAILURES_TOTAL.labels(dependency=dependency, kind=kind).inc()


def record_retention_evictions(count: int) -> None:
    if count > 0:
        RETENTION_EVICTIONS_TOTAL.inc(count)


def record_notification(success: bool) -> None:
    NOTIFICATIONS_TOTAL.labels(outcome="delivered" if success else "failed").inc()


def get_metrics_response() -> bytes:
    """Generate the Prometheus metrics response.

    Returns:
        Bytes containing the metrics in Prometheus exposition format
    """
    return generate_latest(_registry)  # type: ignore[no-any-return]
