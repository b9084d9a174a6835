"""Notification channel implementations.

Provides an ABC for channels plus Slack (chat-ops, every severity) and
PagerDuty Events v2 (paging, critical only). ``BreakerChannel`` wraps
any channel with a circuit breaker so a dead webhook is skipped quickly.

Channels never raise: ``send`` returns True on delivery, False otherwise.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from regwatch.circuit_breaker import CircuitBreaker, CircuitState
from regwatch.notifications.schemas import Notice
from regwatch.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

PAGERDUTY_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'slack', 'pagerduty')."""

    @abstractmethod
    async def send(self, notice: Notice) -> bool:
        """Deliver a notice; True if delivery succeeded."""


class SlackChannel(NotificationChannel):
    """Posts colour-coded attachments to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, timeout: float = 10.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "slack"

    def format_message(self, notice: Notice) -> dict[str, Any]:
        """Build the webhook payload."""
        fields = [
            {"title": "Function", "value": notice.function_name, "short": True},
            {"title": "Severity", "value": notice.severity.upper(), "short": True},
        ]
        if notice.error_type:
            fields.append({"title": "Error Type", "value": notice.error_type, "short": True})
        if notice.endpoint:
            fields.append({"title": "Endpoint", "value": notice.endpoint, "short": False})
        if notice.status_code is not None:
            fields.append(
                {"title": "Status Code", "value": str(notice.status_code), "short": True}
            )
        for key, value in notice.details.items():
            fields.append({"title": key, "value": str(value), "short": True})
        fields.append(
            {"title": "Timestamp", "value": notice.timestamp.isoformat(), "short": True}
        )

        return {
            "text": notice.title,
            "attachments": [
                {
                    "color": notice.display_color,
                    "title": notice.title,
                    "text": notice.message,
                    "fields": fields,
                    "footer": "regwatch",
                    "ts": int(notice.timestamp.timestamp()),
                }
            ],
        }

    async def send(self, notice: Notice) -> bool:
        payload = self.format_message(notice)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._webhook_url, json=payload)
                if resp.is_success:
                    return True
                logger.warning(
                    "Slack webhook returned %d for notice %r",
                    resp.status_code, notice.title,
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Slack webhook timed out for notice %r", notice.title)
            return False
        except Exception as e:
            logger.warning("Slack webhook failed for notice %r: %s", notice.title, e)
            return False


class PagerDutyChannel(NotificationChannel):
    """Triggers a PagerDuty incident via the Events v2 API."""

    def __init__(
        self,
        routing_key: str,
        url: str = PAGERDUTY_EVENTS_URL,
        timeout: float = 10.0,
    ) -> None:
        self._routing_key = routing_key
        self._url = url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "pagerduty"

    def build_event(self, notice: Notice) -> dict[str, Any]:
        """Build the Events v2 ``trigger`` payload."""
        return {
            "routing_key": self._routing_key,
            "event_action": "trigger",
            "payload": {
                "summary": f"{notice.title}: {notice.message}"[:1024],
                "severity": notice.severity,
                "source": notice.endpoint or "regwatch",
                "component": notice.function_name,
                "timestamp": notice.timestamp.isoformat(),
                "custom_details": {
                    "error_type": notice.error_type,
                    "status_code": notice.status_code,
                    **{k: str(v) for k, v in notice.details.items()},
                },
            },
        }

    async def send(self, notice: Notice) -> bool:
        event = self.build_event(notice)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=event)
                if resp.is_success:
                    return True
                logger.warning(
                    "PagerDuty returned %d for notice %r", resp.status_code, notice.title
                )
                return False
        except httpx.TimeoutException:
            logger.warning("PagerDuty timed out for notice %r", notice.title)
            return False
        except Exception as e:
            logger.warning("PagerDuty failed for notice %r: %s", notice.title, e)
            return False


class BreakerChannel(NotificationChannel):
    """Wraps a NotificationChannel with circuit breaker protection.

    While the circuit is OPEN, sends are rejected (False) without calling
    the wrapped channel.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> None:
        self._channel = channel
        self._breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            name=channel.name,
            on_state_change=get_metrics().record_circuit_state,
        )

    @property
    def name(self) -> str:
        return self._channel.name

    @property
    def state(self) -> CircuitState:
        return self._breaker.state

    @property
    def wrapped(self) -> NotificationChannel:
        return self._channel

    async def send(self, notice: Notice) -> bool:
        if not self._breaker.allow_request():
            logger.debug("Circuit %s OPEN, rejecting notice %r", self.name, notice.title)
            return False

        success = await self._channel.send(notice)
        if success:
            self._breaker.record_success()
        else:
            self._breaker.record_failure()
        return success
