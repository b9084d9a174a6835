"""Tests for Slack, PagerDuty and circuit-breaker channels."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
import respx
from prometheus_client import REGISTRY

from regwatch.circuit_breaker import CircuitState
from regwatch.notifications.channels import (
    PAGERDUTY_EVENTS_URL,
    BreakerChannel,
    NotificationChannel,
    PagerDutyChannel,
    SlackChannel,
)
from regwatch.notifications.schemas import Notice

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


def _failure_notice(**overrides) -> Notice:
    data = {
        "kind": "failure",
        "title": "CRITICAL: fetch_api failed",
        "message": "HTTP 503 after 3 attempts",
        "severity": "critical",
        "function_name": "fetch_api",
        "error_type": "ServerError",
        "endpoint": "https://api.fda.gov/food/enforcement.json",
        "status_code": 503,
        "details": {"source": "fda_food_enforcement"},
        "timestamp": datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return Notice(**data)


class TestSlackFormat:
    def test_fields(self):
        payload = SlackChannel(WEBHOOK).format_message(_failure_notice())
        attachment = payload["attachments"][0]
        titles = [f["title"] for f in attachment["fields"]]

        assert payload["text"] == "CRITICAL: fetch_api failed"
        assert attachment["color"] == "#ff0000"
        assert titles == [
            "Function", "Severity", "Error Type", "Endpoint", "Status Code", "source", "Timestamp",
        ]
        assert attachment["fields"][1]["value"] == "CRITICAL"
        assert attachment["ts"] == 1773144000

    def test_optional_fields_omitted(self):
        notice = _failure_notice(error_type=None, endpoint=None, status_code=None, details={})
        fields = SlackChannel(WEBHOOK).format_message(notice)["attachments"][0]["fields"]
        assert [f["title"] for f in fields] == ["Function", "Severity", "Timestamp"]

    def test_state_color_override(self):
        notice = _failure_notice(severity="warning", color="#123456")
        payload = SlackChannel(WEBHOOK).format_message(notice)
        assert payload["attachments"][0]["color"] == "#123456"


class TestSlackSend:
    @pytest.mark.asyncio
    @respx.mock
    async def test_success(self):
        route = respx.post(WEBHOOK).mock(return_value=httpx.Response(200, text="ok"))
        assert await SlackChannel(WEBHOOK).send(_failure_notice()) is True
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error(self):
        respx.post(WEBHOOK).mock(return_value=httpx.Response(500))
        assert await SlackChannel(WEBHOOK).send(_failure_notice()) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self):
        respx.post(WEBHOOK).mock(side_effect=httpx.ReadTimeout("slow"))
        assert await SlackChannel(WEBHOOK).send(_failure_notice()) is False


class TestPagerDuty:
    def test_event(self):
        event = PagerDutyChannel("rk-123").build_event(_failure_notice())

        assert event["routing_key"] == "rk-123"
        assert event["event_action"] == "trigger"
        assert event["payload"]["severity"] == "critical"
        assert event["payload"]["source"] == "https://api.fda.gov/food/enforcement.json"
        assert event["payload"]["custom_details"]["status_code"] == 503
        assert event["payload"]["custom_details"]["source"] == "fda_food_enforcement"

    def test_summary_truncated(self):
        event = PagerDutyChannel("rk").build_event(_failure_notice(message="x" * 2000))
        assert len(event["payload"]["summary"]) == 1024

    @pytest.mark.asyncio
    @respx.mock
    async def test_send(self):
        route = respx.post(PAGERDUTY_EVENTS_URL).mock(return_value=httpx.Response(202))
        assert await PagerDutyChannel("rk").send(_failure_notice()) is True
        assert route.calls[0].request.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self):
        respx.post(PAGERDUTY_EVENTS_URL).mock(side_effect=httpx.ConnectError("refused"))
        assert await PagerDutyChannel("rk").send(_failure_notice()) is False


class _StubChannel(NotificationChannel):
    def __init__(self, result: bool) -> None:
        self.send_mock = AsyncMock(return_value=result)

    @property
    def name(self) -> str:
        return "stub"

    async def send(self, notice: Notice) -> bool:
        return await self.send_mock(notice)


class TestBreakerChannel:
    @pytest.mark.asyncio
    async def test_opens_and_rejects(self):
        inner = _StubChannel(False)
        channel = BreakerChannel(inner, failure_threshold=2, recovery_timeout=60.0)

        assert await channel.send(_failure_notice()) is False
        assert await channel.send(_failure_notice()) is False
        assert channel.state == CircuitState.OPEN

        assert await channel.send(_failure_notice()) is False
        assert inner.send_mock.await_count == 2
        assert REGISTRY.get_sample_value("regwatch_circuit_state", {"breaker": "stub"}) == 2.0

    @pytest.mark.asyncio
    async def test_passthrough(self):
        inner = _StubChannel(True)
        channel = BreakerChannel(inner)

        assert channel.name == "stub"
        assert channel.wrapped is inner
        assert await channel.send(_failure_notice()) is True
        assert channel.state == CircuitState.CLOSED
