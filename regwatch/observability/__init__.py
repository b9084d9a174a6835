"""Observability layer - logging and metrics."""

from regwatch.observability.logging import setup_logging
from regwatch.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
