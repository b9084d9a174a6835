"""Schema definitions for source health and error records.

``HealthRecord`` maps 1:1 to ``data_freshness`` (one row per source,
upserted every run). ``ErrorLogEntry`` maps to ``error_logs``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

HealthState = Literal["healthy", "degraded", "unhealthy"]

VALID_HEALTH_STATES: frozenset[str] = frozenset({"healthy", "degraded", "unhealthy"})

FetchStatus = Literal["success", "empty", "error"]

VALID_FETCH_STATUSES: frozenset[str] = frozenset({"success", "empty", "error"})

Severity = Literal["info", "warning", "error", "critical"]

VALID_SEVERITIES: frozenset[str] = frozenset({"info", "warning", "error", "critical"})


@dataclass
class HealthRecord:
    """Freshness and health of one source after its latest run.

    Attributes:
        source_name: Display name of the source (table key).
        last_attempt: When the latest run finished.
        last_successful_fetch: Latest run that produced items.
        fetch_status: success / empty / error for the latest run.
        records_fetched: Raw items fetched by the latest run.
        total_records_fetched: Running total across runs.
        health_state: healthy / degraded / unhealthy.
        consecutive_failures: Error runs since the last non-error run.
        last_error: Message of the latest error, cleared on success.
        source_id: Registry id.
    """

    source_name: str
    last_attempt: datetime
    fetch_status: str
    records_fetched: int = 0
    total_records_fetched: int = 0
    last_successful_fetch: datetime | None = None
    health_state: str = "healthy"
    consecutive_failures: int = 0
    last_error: str | None = None
    source_id: str | None = None

    def __post_init__(self) -> None:
        if self.fetch_status not in VALID_FETCH_STATUSES:
            raise ValueError(
                f"Invalid fetch_status {self.fetch_status!r}. "
                f"Must be one of: {sorted(VALID_FETCH_STATUSES)}"
            )
        if self.health_state not in VALID_HEALTH_STATES:
            raise ValueError(
                f"Invalid health_state {self.health_state!r}. "
                f"Must be one of: {sorted(VALID_HEALTH_STATES)}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "source_name": self.source_name,
            "source_id": self.source_id,
            "last_attempt": self.last_attempt.isoformat(),
            "last_successful_fetch": (
                self.last_successful_fetch.isoformat()
                if self.last_successful_fetch
                else None
            ),
            "fetch_status": self.fetch_status,
            "records_fetched": self.records_fetched,
            "total_records_fetched": self.total_records_fetched,
            "health_state": self.health_state,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }


@dataclass
class HealthTransition:
    """A change of health state between two consecutive runs."""

    source_name: str
    previous: str
    current: str
    record: HealthRecord

    @property
    def recovered(self) -> bool:
        return self.current == "healthy" and self.previous != "healthy"


@dataclass
class ErrorLogEntry:
    """A structured unrecoverable error."""

    function_name: str
    error_message: str
    error_type: str
    severity: str = "error"
    endpoint: str | None = None
    status_code: int | None = None
    attempt: int | None = None
    context: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.severity not in VALID_SEVERITIES:
            raise ValueError(
                f"Invalid severity {self.severity!r}. "
                f"Must be one of: {sorted(VALID_SEVERITIES)}"
            )
