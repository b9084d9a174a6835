"""Tests for RawItem -> Alert normalization."""

from datetime import datetime, timezone

import pytest

from regwatch.alerts.normalizer import normalize, parse_published_date
from regwatch.alerts.schemas import Alert, SignalType, Urgency
from regwatch.ingestion.schemas import FetchOrigin, RawItem

NOW = datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc)


class TestParsePublishedDate:
    """Every date shape the parsers hand over."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("20260310", datetime(2026, 3, 10, tzinfo=timezone.utc)),
            ("2026-03-10", datetime(2026, 3, 10, tzinfo=timezone.utc)),
            ("2026-03-10T08:00:00Z", datetime(2026, 3, 10, 8, tzinfo=timezone.utc)),
            ("Tue, 10 Mar 2026 14:30:00 GMT", datetime(2026, 3, 10, 14, 30, tzinfo=timezone.utc)),
            ("03/10/2026", datetime(2026, 3, 10, tzinfo=timezone.utc)),
            ("March 10, 2026", datetime(2026, 3, 10, tzinfo=timezone.utc)),
        ],
    )
    def test_formats(self, value, expected):
        assert parse_published_date(value, NOW) == expected

    def test_offset_converted_to_utc(self):
        parsed = parse_published_date("Tue, 10 Mar 2026 09:30:00 -0500", NOW)
        assert parsed == datetime(2026, 3, 10, 14, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "sometime last week"])
    def test_unparsable_falls_back_to_now(self, value):
        assert parse_published_date(value, NOW) == NOW


class TestNormalize:
    def test_maps_source_fields(self, make_source):
        source = make_source()
        item = RawItem(
            title="  Company X Recalls Product Y  ",
            link="https://www.fda.gov/recalls/x",
            description="Salmonella risk",
            pub_date="20260310",
            source_ref=source.endpoints[0],
        )

        alert = normalize(item, source, FetchOrigin.RSS, NOW)

        assert alert.title == "Company X Recalls Product Y"
        assert alert.source == "FDA-Warnings"
        assert alert.agency == "FDA"
        assert alert.region == "US"
        assert alert.source_id == source.id
        assert alert.external_url == "https://www.fda.gov/recalls/x"
        assert alert.published_date == datetime(2026, 3, 10, tzinfo=timezone.utc)

    def test_full_content_snapshot(self, make_source):
        item = RawItem(title="Company X Recalls Product Y", extra={"company": "X"})
        alert = normalize(item, make_source(), FetchOrigin.HTML, NOW)

        assert alert.full_content["origin"] == "HTML"
        assert alert.full_content["title"] == "Company X Recalls Product Y"
        assert alert.full_content["extra"] == {"company": "X"}

    def test_empty_link_is_none(self, make_source):
        alert = normalize(RawItem(title="A sufficiently long title"), make_source(), now=NOW)
        assert alert.external_url is None

    def test_blank_title_rejected(self, make_source):
        with pytest.raises(ValueError):
            normalize(RawItem(title="   "), make_source(), now=NOW)


class TestAlertSchema:
    def test_defaults(self, make_alert):
        alert = make_alert()
        assert alert.urgency == Urgency.LOW
        assert alert.signal_type == SignalType.MARKET_SIGNAL

    def test_naive_date_made_utc(self):
        alert = Alert(
            title="t", source="s", agency="a", region="US",
            published_date=datetime(2026, 3, 1, 12, 0),
        )
        assert alert.published_date.tzinfo == timezone.utc

    def test_urgency_rank_ordering(self):
        ranks = [u.rank for u in (Urgency.LOW, Urgency.MEDIUM, Urgency.HIGH, Urgency.CRITICAL)]
        assert ranks == sorted(ranks)

    def test_to_dict(self, make_alert):
        data = make_alert(urgency=Urgency.HIGH, signal_type=SignalType.RECALL).to_dict()
        assert data["urgency"] == "High"
        assert data["signal_type"] == "Recall"
        assert data["published_date"] == "2026-03-10T12:00:00+00:00"
