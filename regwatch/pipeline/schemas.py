"""Pipeline invocation request and result types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from regwatch.pipeline.scheduler import SourceRunState


@dataclass
class PipelineRequest:
    """Options for one invocation."""

    action: str | None = None
    region: str | None = None
    agency: str | None = None
    force_refresh: bool = False
    test_mode: bool = False


@dataclass
class SourceRunResult:
    """Outcome of one source within an invocation.

    Attributes:
        source_id: Registry id.
        result_key: ``<agency>_<region>`` aggregation key.
        state: Final run state.
        origin: Where items came from (API, RSS, HTML, NONE).
        fetched: Raw items fetched.
        inserted: New alerts written.
        duplicates: Items rejected as duplicates.
        error: Failure message, if any.
        warnings: Non-fatal problems (failed endpoints, fallbacks).
    """

    source_id: str
    result_key: str
    state: SourceRunState
    origin: str = "NONE"
    fetched: int = 0
    inserted: int = 0
    duplicates: int = 0
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "result_key": self.result_key,
            "state": self.state.value,
            "origin": self.origin,
            "fetched": self.fetched,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "error": self.error,
            "warnings": list(self.warnings),
        }


@dataclass
class PipelineResult:
    """Aggregate of one invocation."""

    sources: list[SourceRunResult] = field(default_factory=list)
    test_mode: bool = False
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def total_inserted(self) -> int:
        return sum(s.inserted for s in self.sources)

    @property
    def results(self) -> dict[str, int]:
        """Inserted alerts per ``<agency>_<region>``, summed across sources."""
        totals: dict[str, int] = {}
        for s in self.sources:
            if s.state == SourceRunState.SKIPPED:
                continue
            totals[s.result_key] = totals.get(s.result_key, 0) + s.inserted
        return totals

    def by_state(self, state: SourceRunState) -> list[SourceRunResult]:
        return [s for s in self.sources if s.state == state]

    def to_response(self) -> dict[str, Any]:
        """The invocation response body."""
        return {
            "success": True,
            "totalAlertsProcessed": self.total_inserted,
            "results": self.results,
            "timestamp": self.timestamp.isoformat(),
        }
