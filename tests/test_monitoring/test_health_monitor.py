"""Tests for per-source health tracking across runs."""

from datetime import datetime, timedelta, timezone

import pytest

from regwatch.monitoring.service import SourceHealthMonitor, compute_health_state

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestComputeHealthState:
    @pytest.mark.parametrize(
        "status,failures,expected",
        [
            ("success", 0, "healthy"),
            ("empty", 0, "degraded"),
            ("error", 1, "degraded"),
            ("error", 2, "degraded"),
            ("error", 3, "unhealthy"),
            ("error", 7, "unhealthy"),
        ],
    )
    def test_states(self, status, failures, expected):
        assert compute_health_state(status, failures, 3) == expected


@pytest.fixture
def monitor(freshness_repository):
    return SourceHealthMonitor(freshness_repository, unhealthy_after=3)


class TestRecordRun:
    @pytest.mark.asyncio
    async def test_first_success_has_no_transition(self, monitor, freshness_repository):
        record, transition = await monitor.record_run(
            "FDA-Warnings", fetch_status="success", records_fetched=4, now=T0
        )

        assert transition is None
        assert record.health_state == "healthy"
        assert record.last_successful_fetch == T0
        assert freshness_repository.records["FDA-Warnings"] is record

    @pytest.mark.asyncio
    async def test_three_failures_become_unhealthy(self, monitor):
        await monitor.record_run("FDA-Warnings", fetch_status="success", records_fetched=4, now=T0)

        _, first = await monitor.record_run(
            "FDA-Warnings", fetch_status="error", records_fetched=0,
            error="ServerError: 503", now=T0 + timedelta(minutes=30),
        )
        _, second = await monitor.record_run(
            "FDA-Warnings", fetch_status="error", records_fetched=0,
            error="ServerError: 503", now=T0 + timedelta(minutes=60),
        )
        record, third = await monitor.record_run(
            "FDA-Warnings", fetch_status="error", records_fetched=0,
            error="ServerError: 503", now=T0 + timedelta(minutes=90),
        )

        assert (first.previous, first.current) == ("healthy", "degraded")
        assert second is None
        assert (third.previous, third.current) == ("degraded", "unhealthy")
        assert record.consecutive_failures == 3
        assert record.last_error == "ServerError: 503"
        assert record.last_successful_fetch == T0

    @pytest.mark.asyncio
    async def test_recovery(self, monitor):
        for i in range(3):
            await monitor.record_run(
                "EFSA", fetch_status="error", records_fetched=0, error="boom",
                now=T0 + timedelta(minutes=i),
            )

        record, transition = await monitor.record_run(
            "EFSA", fetch_status="success", records_fetched=2, now=T0 + timedelta(hours=1)
        )

        assert transition.recovered is True
        assert transition.previous == "unhealthy"
        assert record.consecutive_failures == 0
        assert record.last_error is None

    @pytest.mark.asyncio
    async def test_empty_resets_failures(self, monitor):
        await monitor.record_run("EFSA", fetch_status="error", records_fetched=0, error="x", now=T0)
        record, _ = await monitor.record_run("EFSA", fetch_status="empty", records_fetched=0, now=T0)

        assert record.consecutive_failures == 0
        assert record.health_state == "degraded"

    @pytest.mark.asyncio
    async def test_totals_accumulate(self, monitor):
        await monitor.record_run("FSIS", fetch_status="success", records_fetched=5, now=T0)
        record, _ = await monitor.record_run("FSIS", fetch_status="success", records_fetched=3, now=T0)

        assert record.records_fetched == 3
        assert record.total_records_fetched == 8

    def test_invalid_threshold(self, freshness_repository):
        with pytest.raises(ValueError):
            SourceHealthMonitor(freshness_repository, unhealthy_after=0)
