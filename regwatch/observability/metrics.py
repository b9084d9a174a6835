"""
Prometheus metrics for monitoring the regulatory ingestion pipeline.

Defines and exposes metrics for:
- Fetch attempts, outcomes, and latency per source
- Alerts inserted vs. duplicates skipped
- Parse errors
- Per-source health state
- Circuit breaker state for the summary API and notification channels
- Pipeline run duration

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging
from typing import Any

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from regwatch.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for fetch latency histograms (in seconds)
LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)

# Numeric encoding of health states for the gauge
HEALTH_STATE_VALUES = {"healthy": 2, "degraded": 1, "unhealthy": 0}

# Numeric encoding of circuit breaker states
CIRCUIT_STATE_VALUES = {"CLOSED": 0, "HALF_OPEN": 1, "OPEN": 2}


class MetricsCollector:
    """
    Prometheus metrics collector for the regwatch pipeline.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_fetch("fsis_recalls", outcome="ok", origin="RSS", latency=1.2)
        metrics.record_alerts("fsis_recalls", inserted=3, duplicates=7)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.fetches = Counter(
            "regwatch_fetches_total",
            "Connector fetches by outcome",
            ["source", "outcome", "origin"],  # outcome: ok, empty, error
        )

        self.fetch_latency = Histogram(
            "regwatch_fetch_latency_seconds",
            "Time to fetch and parse one source",
            ["source"],
            buckets=LATENCY_BUCKETS,
        )

        self.http_retries = Counter(
            "regwatch_http_retries_total",
            "HTTP retries by reason",
            ["reason"],  # rate_limited, server_error, network, bad_request
        )

        self.items_fetched = Counter(
            "regwatch_items_fetched_total",
            "Raw items returned by parsers",
            ["source"],
        )

        self.alerts_inserted = Counter(
            "regwatch_alerts_inserted_total",
            "Alerts written to the store",
            ["source", "urgency"],
        )

        self.duplicates_skipped = Counter(
            "regwatch_duplicates_skipped_total",
            "Alerts rejected by the deduplicator",
            ["source"],
        )

        self.parse_errors = Counter(
            "regwatch_parse_errors_total",
            "Payloads that could not be parsed",
            ["source", "parser"],
        )

        self.source_health = Gauge(
            "regwatch_source_health",
            "Source health (2=healthy, 1=degraded, 0=unhealthy)",
            ["source"],
        )

        self.pipeline_duration = Histogram(
            "regwatch_pipeline_duration_seconds",
            "Wall-clock duration of one pipeline invocation",
            buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0),
        )

        self.circuit_state = Gauge(
            "regwatch_circuit_state",
            "Circuit breaker state (0=closed, 1=half-open, 2=open)",
            ["breaker"],
        )

        self.circuit_transitions = Counter(
            "regwatch_circuit_transitions_total",
            "Circuit breaker state changes",
            ["breaker", "state"],
        )

        self.notifications_sent = Counter(
            "regwatch_notifications_sent_total",
            "External notifications by channel and result",
            ["channel", "status"],
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_fetch(
        self,
        source: str,
        outcome: str,
        origin: str,
        latency: float | None = None,
        items: int = 0,
    ) -> None:
        """
        Record one connector fetch.

        Args:
            source: Source identifier
            outcome: ok, empty, or error
            origin: API, RSS, or NONE
            latency: Optional fetch latency in seconds
            items: Raw items returned
        """
        self.fetches.labels(source=source, outcome=outcome, origin=origin).inc()
        if latency is not None:
            self.fetch_latency.labels(source=source).observe(latency)
        if items:
            self.items_fetched.labels(source=source).inc(items)

    def record_retry(self, reason: str) -> None:
        """Record an HTTP retry."""
        self.http_retries.labels(reason=reason).inc()

    def record_alerts(
        self,
        source: str,
        inserted: dict[str, int] | None = None,
        duplicates: int = 0,
    ) -> None:
        """
        Record persistence results for a source.

        Args:
            source: Source identifier
            inserted: Inserted counts keyed by urgency band
            duplicates: Number of duplicates skipped
        """
        for urgency, count in (inserted or {}).items():
            if count:
                self.alerts_inserted.labels(source=source, urgency=urgency).inc(count)
        if duplicates:
            self.duplicates_skipped.labels(source=source).inc(duplicates)

    def record_parse_error(self, source: str, parser: str) -> None:
        """Record a parse failure."""
        self.parse_errors.labels(source=source, parser=parser).inc()

    def set_source_health(self, source: str, state: str) -> None:
        """
        Set source health gauge.

        Args:
            source: Source identifier
            state: healthy, degraded, or unhealthy
        """
        self.source_health.labels(source=source).set(HEALTH_STATE_VALUES.get(state, 0))

    def record_circuit_state(self, breaker: str, old: Any, new: Any) -> None:
        """State listener for CircuitBreaker; ``old`` and ``new`` are CircuitState."""
        self.circuit_state.labels(breaker=breaker).set(CIRCUIT_STATE_VALUES.get(new.value, 0))
        self.circuit_transitions.labels(breaker=breaker, state=new.value).inc()

    def record_notification(self, channel: str, success: bool) -> None:
        """Record an external notification attempt."""
        self.notifications_sent.labels(
            channel=channel,
            status="success" if success else "failure",
        ).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
