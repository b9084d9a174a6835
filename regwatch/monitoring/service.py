"""Source health tracking across runs.

Per-request retries live in the HTTP client; this tracks sustained
failure across runs. A source is:

- ``healthy``   when its latest run fetched items,
- ``degraded``  when it fetched nothing, or has failed fewer than
                ``unhealthy_after`` runs in a row,
- ``unhealthy`` after ``unhealthy_after`` consecutive failed runs.

Every run upserts the source's ``data_freshness`` row and reports a
``HealthTransition`` when the state changed.
"""

import logging
from datetime import datetime, timezone

from regwatch.monitoring.repository import FreshnessRepository
from regwatch.monitoring.schemas import HealthRecord, HealthTransition
from regwatch.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


def compute_health_state(fetch_status: str, consecutive_failures: int, unhealthy_after: int) -> str:
    """Pure state function; see module docstring."""
    if fetch_status == "success":
        return "healthy"
    if fetch_status == "error" and consecutive_failures >= unhealthy_after:
        return "unhealthy"
    return "degraded"


class SourceHealthMonitor:
    """Computes and persists per-source health.

    Args:
        repository: ``data_freshness`` repository.
        unhealthy_after: Consecutive failed runs before ``unhealthy``.
    """

    def __init__(self, repository: FreshnessRepository, unhealthy_after: int = 3) -> None:
        if unhealthy_after < 1:
            raise ValueError("unhealthy_after must be >= 1")
        self._repo = repository
        self._unhealthy_after = unhealthy_after

    async def record_run(
        self,
        source_name: str,
        *,
        fetch_status: str,
        records_fetched: int,
        error: str | None = None,
        source_id: str | None = None,
        now: datetime | None = None,
    ) -> tuple[HealthRecord, HealthTransition | None]:
        """
        Fold one run into the source's health and persist it.

        Args:
            source_name: Source display name
            fetch_status: success / empty / error
            records_fetched: Raw items fetched this run (not inserted)
            error: Failure message for error runs
            source_id: Registry id
            now: Run completion time

        Returns:
            The stored record and the transition, if the state changed
        """
        now = now or datetime.now(timezone.utc)
        previous = await self._repo.get(source_name)

        if fetch_status == "error":
            failures = (previous.consecutive_failures if previous else 0) + 1
        else:
            failures = 0

        state = compute_health_state(fetch_status, failures, self._unhealthy_after)
        record = HealthRecord(
            source_name=source_name,
            source_id=source_id,
            last_attempt=now,
            last_successful_fetch=(
                now if fetch_status == "success"
                else (previous.last_successful_fetch if previous else None)
            ),
            fetch_status=fetch_status,
            records_fetched=records_fetched,
            total_records_fetched=(
                (previous.total_records_fetched if previous else 0) + records_fetched
            ),
            health_state=state,
            consecutive_failures=failures,
            last_error=error if fetch_status == "error" else None,
        )
        await self._repo.upsert(record)
        get_metrics().set_source_health(source_name, state)

        # A source with no row yet starts out healthy
        previous_state = previous.health_state if previous else "healthy"
        if previous_state == state:
            return record, None

        logger.info(
            "Source %s health %s -> %s (failures=%d)",
            source_name, previous_state, state, failures,
        )
        return record, HealthTransition(source_name, previous_state, state, record)
