"""Tests for structured error context."""

from regwatch.observability.logging import error_context


def test_drops_none_values():
    context = error_context("fetch_rss", endpoint="https://x/rss.xml")

    assert context == {
        "function_name": "fetch_rss",
        "endpoint": "https://x/rss.xml",
        "will_retry": False,
    }


def test_extra_fields():
    context = error_context(
        "fetch_api", status_code=503, attempt=3, will_retry=True, source="fda_food"
    )

    assert context["status_code"] == 503
    assert context["attempt"] == 3
    assert context["will_retry"] is True
    assert context["source"] == "fda_food"
