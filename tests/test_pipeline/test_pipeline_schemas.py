"""Tests for the invocation result and its response body."""

from datetime import datetime, timezone

from regwatch.pipeline.scheduler import SourceRunState
from regwatch.pipeline.schemas import PipelineResult, SourceRunResult


def _run(source_id, key, state, inserted=0):
    return SourceRunResult(source_id=source_id, result_key=key, state=state, inserted=inserted)


def test_results_sum_per_key_and_skip_skipped():
    result = PipelineResult(sources=[
        _run("fda_food", "FDA_US", SourceRunState.SUCCEEDED, 2),
        _run("fda_rss", "FDA_US", SourceRunState.SUCCEEDED, 1),
        _run("fsis", "USDA_US", SourceRunState.FAILED),
        _run("efsa", "EFSA_EU", SourceRunState.SKIPPED),
    ])

    assert result.total_inserted == 3
    assert result.results == {"FDA_US": 3, "USDA_US": 0}
    assert len(result.by_state(SourceRunState.FAILED)) == 1


def test_to_response():
    result = PipelineResult(
        sources=[_run("fda_rss", "FDA_US", SourceRunState.SUCCEEDED, 1)],
        timestamp=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
    )

    assert result.to_response() == {
        "success": True,
        "totalAlertsProcessed": 1,
        "results": {"FDA_US": 1},
        "timestamp": "2026-03-10T12:00:00+00:00",
    }


def test_source_run_to_dict():
    run = _run("fda_rss", "FDA_US", SourceRunState.FAILED)
    run.error = "ClientError: HTTP 403"
    data = run.to_dict()
    assert data["state"] == "failed"
    assert data["origin"] == "NONE"
    assert data["error"] == "ClientError: HTTP 403"
