"""Per-source freshness, health state and structured error logs."""

from regwatch.monitoring.repository import ErrorLogRepository, FreshnessRepository
from regwatch.monitoring.schemas import ErrorLogEntry, HealthRecord, HealthTransition
from regwatch.monitoring.service import SourceHealthMonitor

__all__ = [
    "ErrorLogEntry",
    "ErrorLogRepository",
    "FreshnessRepository",
    "HealthRecord",
    "HealthTransition",
    "SourceHealthMonitor",
]
