"""Tests for health and error-log records."""

from datetime import datetime, timezone

import pytest

from regwatch.monitoring.schemas import ErrorLogEntry, HealthRecord, HealthTransition

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_health_record_validation():
    with pytest.raises(ValueError, match="fetch_status"):
        HealthRecord(source_name="x", last_attempt=T0, fetch_status="partial")
    with pytest.raises(ValueError, match="health_state"):
        HealthRecord(source_name="x", last_attempt=T0, fetch_status="success", health_state="dead")


def test_health_record_to_dict():
    data = HealthRecord(source_name="FSIS", last_attempt=T0, fetch_status="empty").to_dict()
    assert data["last_attempt"] == "2026-03-10T12:00:00+00:00"
    assert data["last_successful_fetch"] is None
    assert data["health_state"] == "healthy"


def test_transition_recovered():
    record = HealthRecord(source_name="x", last_attempt=T0, fetch_status="success")
    assert HealthTransition("x", "degraded", "healthy", record).recovered
    assert not HealthTransition("x", "healthy", "degraded", record).recovered


def test_error_log_severity():
    with pytest.raises(ValueError, match="severity"):
        ErrorLogEntry(function_name="f", error_message="m", error_type="T", severity="fatal")
