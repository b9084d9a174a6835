"""Tests for the Source model."""

from datetime import datetime, timezone

import pytest

from regwatch.sources.schemas import Source


class TestSource:
    def test_invalid_type(self, make_source):
        with pytest.raises(ValueError, match="Invalid source type"):
            make_source(type="ftp")

    def test_non_positive_poll_interval(self, make_source):
        with pytest.raises(ValueError, match="poll_interval_minutes"):
            make_source(poll_interval_minutes=0)

    def test_keys(self, make_source):
        source = make_source()
        assert source.result_key == "FDA_US"
        assert source.cooldown_key == "last_run_fda_recalls_rss"

    def test_resolve_url_joins_base(self, make_source):
        source = make_source(base_url="https://api.fda.gov/")
        assert source.resolve_url("/food/enforcement.json") == "https://api.fda.gov/food/enforcement.json"

    def test_resolve_url_absolute_passthrough(self, make_source):
        source = make_source(base_url="https://api.fda.gov")
        assert source.resolve_url("https://other.gov/x") == "https://other.gov/x"

    def test_resolve_url_without_base(self, make_source):
        assert make_source().resolve_url("relative/path") == "relative/path"

    def test_metadata_hints(self, make_source):
        source = make_source(metadata={"critical": True, "timeout_seconds": "45"})
        assert source.is_critical is True
        assert source.timeout_seconds == 45.0
        assert make_source().is_critical is False
        assert make_source().timeout_seconds is None


class TestFromDict:
    def test_defaults(self):
        source = Source.from_dict(
            {"id": "efsa_news", "name": "EFSA", "agency": "EFSA", "type": "rss"}
        )
        assert source.region == "US"
        assert source.poll_interval_minutes == 60
        assert source.priority == 5
        assert source.active is True
        assert source.fallback_feeds == {}

    def test_parses_last_fetch(self):
        source = Source.from_dict({
            "id": "x", "name": "X", "agency": "FDA", "type": "api",
            "last_successful_fetch": "2026-03-10T12:00:00+00:00",
        })
        assert source.last_successful_fetch == datetime(2026, 3, 10, 12, tzinfo=timezone.utc)

    def test_to_dict_round_trip_fields(self, make_source):
        data = make_source(fallback_feeds={"/a": "https://b/rss"}).to_dict()
        restored = Source.from_dict(data)
        assert restored.fallback_feeds == {"/a": "https://b/rss"}
        assert restored.keywords == ["recall", "salmonella", "listeria", "undeclared"]
        assert data["last_successful_fetch"] is None
