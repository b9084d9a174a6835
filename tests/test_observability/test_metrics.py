"""Tests for the Prometheus metrics collector."""

from prometheus_client import REGISTRY

from regwatch.circuit_breaker import CircuitBreaker
from regwatch.observability.metrics import get_metrics


def _sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_singleton():
    assert get_metrics() is get_metrics()


def test_record_fetch():
    labels = {"source": "metrics_test_fetch", "outcome": "ok", "origin": "RSS"}
    before = _sample("regwatch_fetches_total", labels)

    get_metrics().record_fetch("metrics_test_fetch", "ok", "RSS", latency=0.4, items=3)

    assert _sample("regwatch_fetches_total", labels) == before + 1


def test_record_alerts_by_urgency():
    metrics = get_metrics()
    labels = {"source": "metrics_test_alerts", "urgency": "High"}
    before = _sample("regwatch_alerts_inserted_total", labels)

    metrics.record_alerts("metrics_test_alerts", {"High": 2, "Low": 0}, duplicates=1)

    assert _sample("regwatch_alerts_inserted_total", labels) == before + 2


def test_source_health_gauge():
    metrics = get_metrics()
    metrics.set_source_health("metrics_test_health", "degraded")
    assert _sample("regwatch_source_health", {"source": "metrics_test_health"}) == 1.0

    metrics.set_source_health("metrics_test_health", "unhealthy")
    assert _sample("regwatch_source_health", {"source": "metrics_test_health"}) == 0.0


def test_circuit_state_gauge():
    metrics = get_metrics()
    labels = {"breaker": "metrics_test_breaker"}
    breaker = CircuitBreaker(
        failure_threshold=1,
        recovery_timeout=60.0,
        name="metrics_test_breaker",
        on_state_change=metrics.record_circuit_state,
    )

    breaker.record_failure()
    assert _sample("regwatch_circuit_state", labels) == 2.0
    assert _sample(
        "regwatch_circuit_transitions_total", {**labels, "state": "OPEN"}
    ) == 1.0

    breaker.record_success()
    assert _sample("regwatch_circuit_state", labels) == 0.0
