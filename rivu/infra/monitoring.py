"""
Prometheus Monitoring for Rivu Core.

Score recalculations and nudge checks run as fire-and-forget side effects
of other requests, so their failures never reach an HTTP status code. These
metrics are how they stay observable:

- Score recalculations by trigger and outcome, plus latency
- Nudges created by type
- Nudge persistence and check failures
- Ledger-event subscriber failures
- HTTP request latency and error rates
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)


# =============================================================================
# Metrics Definitions
# =============================================================================

# HTTP Request Metrics
http_requests_total = Counter(
    "rivu_http_requests_total",
    "Total HTTP requests received",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "rivu_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Score Engine Metrics
score_recalculations_total = Counter(
    "rivu_score_recalculations_total",
    "Rivu Score recalculations",
    ["trigger", "outcome"],
)

score_calculation_duration_seconds = Histogram(
    "rivu_score_calculation_duration_seconds",
    "Time spent reading the ledger and computing a score",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

# Nudge Metrics
nudges_created_total = Counter(
    "rivu_nudges_created_total",
    "Nudges persisted by the rule engine or manually",
    ["type"],
)

nudges_skipped_total = Counter(
    "rivu_nudges_skipped_total",
    "Nudge candidates skipped because an identical active nudge exists",
    ["type"],
)

nudge_failures_total = Counter(
    "rivu_nudge_failures_total",
    "Nudge evaluation or persistence failures",
    ["stage"],
)

# Ledger Event Metrics
ledger_event_handler_errors_total = Counter(
    "rivu_ledger_event_handler_errors_total",
    "Ledger-event subscribers that raised",
    ["event", "handler"],
)


# =============================================================================
# Metrics Recording Functions
# =============================================================================


def record_request(
    method: str,
    endpoint: str,
    status: int,
    duration_seconds: float,
) -> None:
    """Record HTTP request metrics."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration_seconds)


def record_score_recalculation(trigger: str, succeeded: bool) -> None:
    """
    Record the outcome of one recalculation.

    Args:
        trigger: What caused it (ledger event name, "api", "initial")
        succeeded: Whether the score was persisted
    """
    score_recalculations_total.labels(
        trigger=trigger, outcome="success" if succeeded else "failure"
    ).inc()


def record_nudge_created(nudge_type: str) -> None:
    nudges_created_total.labels(type=nudge_type).inc()


def record_nudge_skipped(nudge_type: str) -> None:
    nudges_skipped_total.labels(type=nudge_type).inc()


def record_nudge_failure(stage: str) -> None:
    """
    Record a swallowed nudge failure.

    Args:
        stage: "persist" (one candidate failed), "check" (a whole pass failed
            inside login/profile/transaction flows) or "sweep"
    """
    nudge_failures_total.labels(stage=stage).inc()


def record_ledger_handler_error(event: str, handler: str) -> None:
    ledger_event_handler_errors_total.labels(event=event, handler=handler).inc()


# =============================================================================
# Context Managers for Automatic Timing
# =============================================================================


@contextmanager
def track_score_calculation() -> Iterator[None]:
    """
    Time a score calculation.

    Usage:
        >>> with track_score_calculation():
        ...     breakdown = calculate_score(snapshot, login_count, now)
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        score_calculation_duration_seconds.observe(time.perf_counter() - start_time)


@contextmanager
def track_request(method: str, endpoint: str) -> Iterator[dict[str, Any]]:
    """
    Context manager for tracking HTTP request metrics.

    Usage:
        >>> with track_request("GET", request.url.path) as ctx:
        ...     ctx["endpoint"] = "/api/v1/nudges/{nudge_id}/dismiss"
        ...     ctx["status"] = 200
    """
    start_time = time.perf_counter()
    ctx: dict[str, Any] = {"status": 500, "endpoint": endpoint}
    try:
        yield ctx
    finally:
        record_request(
            method=method,
            endpoint=ctx.get("endpoint", endpoint),
            status=ctx.get("status", 500),
            duration_seconds=time.perf_counter() - start_time,
        )


# =============================================================================
# Prometheus Metrics Export
# =============================================================================


class PrometheusMetrics:
    """Prometheus text exposition for the /metrics endpoint."""

    CONTENT_TYPE = CONTENT_TYPE_LATEST

    @staticmethod
    def generate_metrics() -> bytes:
        return generate_latest()

    @staticmethod
    def get_metrics_as_text() -> str:
        return PrometheusMetrics.generate_metrics().decode("utf-8")


__all__ = [
    "record_request",
    "record_score_recalculation",
    "record_nudge_created",
    "record_nudge_skipped",
    "record_nudge_failure",
    "record_ledger_handler_error",
    "track_score_calculation",
    "track_request",
    "PrometheusMetrics",
]
