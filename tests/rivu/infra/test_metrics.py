"""
Tests for the Prometheus metrics helpers.

Counters are process-global, so every assertion compares before/after values.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from prometheus_client import REGISTRY

from conftest import NOW
from rivu.infra.monitoring import (
    PrometheusMetrics,
    record_nudge_failure,
    track_request,
    track_score_calculation,
)
from rivu.models import OnboardingStage


def _sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_nudge_failure_counter() -> None:
    before = _sample("rivu_nudge_failures_total", stage="sweep")
    record_nudge_failure("sweep")
    assert _sample("rivu_nudge_failures_total", stage="sweep") == before + 1


def test_track_request_uses_late_endpoint_and_status() -> None:
    labels = {"method": "GET", "endpoint": "/api/v1/nudges/{nudge_id}/dismiss", "status": "200"}
    before = _sample("rivu_http_requests_total", **labels)

    with track_request("GET", "/api/v1/nudges/7/dismiss") as ctx:
        ctx["endpoint"] = "/api/v1/nudges/{nudge_id}/dismiss"
        ctx["status"] = 200

    assert _sample("rivu_http_requests_total", **labels) == before + 1


def test_track_request_defaults_to_500() -> None:
    labels = {"method": "POST", "endpoint": "/boom", "status": "500"}
    before = _sample("rivu_http_requests_total", **labels)

    with pytest.raises(RuntimeError), track_request("POST", "/boom"):
        raise RuntimeError("handler crashed")

    assert _sample("rivu_http_requests_total", **labels) == before + 1


def test_track_score_calculation_observes() -> None:
    before = _sample("rivu_score_calculation_duration_seconds_count")
    with track_score_calculation():
        pass
    assert _sample("rivu_score_calculation_duration_seconds_count") == before + 1


def test_recalculation_and_nudge_counters(services, make_user) -> None:
    user = make_user(
        onboarding_stage=OnboardingStage.NEW.value,
        onboarding_completed=False,
        account_creation_date=NOW - timedelta(days=1),
    )
    score_before = _sample("rivu_score_recalculations_total", trigger="api", outcome="success")
    created_before = _sample("rivu_nudges_created_total", type="onboarding")
    skipped_before = _sample("rivu_nudges_skipped_total", type="onboarding")

    services.scores.recalculate_score(user.id)
    services.nudges.check_and_create_nudges(user.id)
    services.nudges.check_and_create_nudges(user.id)

    assert _sample("rivu_score_recalculations_total", trigger="api", outcome="success") == score_before + 1
    assert _sample("rivu_nudges_created_total", type="onboarding") == created_before + 1
    assert _sample("rivu_nudges_skipped_total", type="onboarding") == skipped_before + 1


def test_exposition_text() -> None:
    text = PrometheusMetrics.get_metrics_as_text()
    assert "rivu_score_recalculations_total" in text
    assert "rivu_nudges_created_total" in text
