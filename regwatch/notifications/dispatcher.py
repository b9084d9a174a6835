"""Notification dispatcher: structured error logging plus severity routing.

Routing:
- every failure is logged (and persisted to ``error_logs`` when a
  repository is configured) before anything else;
- nothing is sent when ``ALERT_ENABLED`` is false;
- ``critical`` pages PagerDuty;
- every severity posts to Slack.

Notification failures never propagate to the pipeline.
"""

import asyncio
import logging
from typing import Any

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from regwatch.config.settings import Settings, get_settings
from regwatch.ingestion.errors import IngestionError, NoResultsError
from regwatch.monitoring.repository import ErrorLogRepository
from regwatch.monitoring.schemas import ErrorLogEntry, HealthTransition
from regwatch.notifications.channels import (
    BreakerChannel,
    NotificationChannel,
    PagerDutyChannel,
    SlackChannel,
)
from regwatch.notifications.schemas import DEFAULT_STATE_COLOR, STATE_COLORS, Notice
from regwatch.observability.logging import error_context
from regwatch.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)
_stdlib_logger = logging.getLogger(__name__)


class NotificationConfig(BaseSettings):
    """Configuration for notification dispatch and source health."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    channel_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for each webhook POST",
    )
    retry_max_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Send attempts per channel per notice",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay between send attempts",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before a channel circuit opens",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=1.0,
        description="Seconds before a channel circuit probes recovery",
    )
    unhealthy_after_failures: int = Field(
        default=3,
        ge=1,
        description="Consecutive failed runs before a source is unhealthy",
    )
    notify_recovery: bool = Field(
        default=True,
        description="Post a success notice when a source recovers",
    )


def determine_severity(error: BaseException, will_retry: bool = False) -> str:
    """
    Map an error onto a notification severity.

    NoResultsError and 5xx are critical. A failure with a retry still
    pending is a warning. Anything else, parse failures included, is an
    error.
    """
    if isinstance(error, NoResultsError):
        return "critical"
    status = getattr(error, "status_code", None)
    if status is not None and status >= 500:
        return "critical"
    if will_retry:
        return "warning"
    return "error"


def _transition_severity(transition: HealthTransition) -> str:
    if transition.current == "unhealthy":
        return "critical"
    if transition.recovered:
        return "info"
    return "warning"


class NotificationDispatcher:
    """Routes notices to Slack and PagerDuty.

    Args:
        slack: Chat-ops channel (every severity), or None.
        pagerduty: Paging channel (critical only), or None.
        config: Dispatch configuration.
        enabled: Master switch; when False notices are only logged.
        error_logs: Optional ``error_logs`` repository.
    """

    def __init__(
        self,
        slack: NotificationChannel | None = None,
        pagerduty: NotificationChannel | None = None,
        config: NotificationConfig | None = None,
        enabled: bool = True,
        error_logs: ErrorLogRepository | None = None,
    ) -> None:
        self._config = config or NotificationConfig()
        self._enabled = enabled
        self._error_logs = error_logs
        self._slack = self._wrap(slack)
        self._pagerduty = self._wrap(pagerduty)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        config: NotificationConfig | None = None,
        error_logs: ErrorLogRepository | None = None,
    ) -> "NotificationDispatcher":
        """Build channels from environment configuration."""
        settings = settings or get_settings()
        config = config or NotificationConfig()
        slack = (
            SlackChannel(settings.slack_webhook_url, timeout=config.channel_timeout_seconds)
            if settings.slack_configured
            else None
        )
        pagerduty = (
            PagerDutyChannel(
                settings.pagerduty_routing_key.get_secret_value(),
                timeout=config.channel_timeout_seconds,
            )
            if settings.pagerduty_configured
            else None
        )
        return cls(
            slack=slack,
            pagerduty=pagerduty,
            config=config,
            enabled=settings.alert_enabled,
            error_logs=error_logs,
        )

    def _wrap(self, channel: NotificationChannel | None) -> NotificationChannel | None:
        if channel is None or isinstance(channel, BreakerChannel):
            return channel
        return BreakerChannel(
            channel,
            failure_threshold=self._config.circuit_breaker_threshold,
            recovery_timeout=self._config.circuit_breaker_recovery_seconds,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def config(self) -> NotificationConfig:
        return self._config

    @property
    def channels(self) -> list[NotificationChannel]:
        return [c for c in (self._slack, self._pagerduty) if c is not None]

    # ── Public API ──────────────────────────────────────────────

    async def notify_failure(
        self,
        error: BaseException,
        *,
        function_name: str,
        severity: str | None = None,
        will_retry: bool = False,
        details: dict[str, Any] | None = None,
        route: bool = True,
    ) -> list[tuple[str, bool]]:
        """
        Log an unrecoverable error and route it by severity.

        With ``route=False`` the error is only logged and persisted.

        Returns:
            (channel_name, success) for every channel attempted
        """
        severity = severity or determine_severity(error, will_retry)
        endpoint = getattr(error, "endpoint", None)
        status_code = getattr(error, "status_code", None)
        attempt = getattr(error, "attempts", None)
        error_type = (
            error.error_type if isinstance(error, IngestionError) else type(error).__name__
        )
        context = error_context(
            function_name,
            endpoint=endpoint,
            status_code=status_code,
            attempt=attempt,
            will_retry=will_retry,
            error_type=error_type,
            severity=severity,
            **(details or {}),
        )
        logger.error(str(error), **context)
        await self._persist_error(error, severity, context)
        if not route:
            return []

        notice = Notice(
            kind="failure",
            title=f"{severity.upper()}: {function_name} failed",
            message=str(error),
            severity=severity,
            function_name=function_name,
            error_type=error_type,
            endpoint=endpoint,
            status_code=status_code,
            details=dict(details or {}),
        )
        return await self._route(notice)

    async def notify_state_change(self, transition: HealthTransition) -> list[tuple[str, bool]]:
        """Post a state-change notice for a source health transition."""
        record = transition.record
        details: dict[str, Any] = {
            "Source": transition.source_name,
            "Consecutive Failures": record.consecutive_failures,
        }
        if record.last_error:
            details["Last Error"] = record.last_error[:300]
        notice = Notice(
            kind="state_change",
            title=(
                f"Source {transition.source_name}: "
                f"{transition.previous} -> {transition.current}"
            ),
            message=f"Health changed from {transition.previous} to {transition.current}",
            severity=_transition_severity(transition),
            function_name="source_health",
            color=STATE_COLORS.get(transition.current, DEFAULT_STATE_COLOR),
            details=details,
        )
        logger.info(
            "source_state_change",
            source=transition.source_name,
            previous=transition.previous,
            current=transition.current,
        )
        return await self._route(notice)

    async def notify_success(
        self,
        source_name: str,
        records_fetched: int,
        message: str | None = None,
    ) -> list[tuple[str, bool]]:
        """Post an info notice, used when a source recovers."""
        if not self._config.notify_recovery:
            return []
        notice = Notice(
            kind="success",
            title=f"Source {source_name} recovered",
            message=message or f"Fetched {records_fetched} records",
            severity="info",
            function_name="source_health",
            details={"Source": source_name, "Records Fetched": records_fetched},
        )
        return await self._route(notice)

    # ── Delivery ────────────────────────────────────────────────

    async def _route(self, notice: Notice) -> list[tuple[str, bool]]:
        if not self._enabled:
            return []

        targets: list[NotificationChannel] = []
        if notice.severity == "critical" and self._pagerduty is not None:
            targets.append(self._pagerduty)
        if self._slack is not None:
            targets.append(self._slack)

        results: list[tuple[str, bool]] = []
        for channel in targets:
            success = await self._send_with_retry(channel, notice)
            get_metrics().record_notification(channel.name, success)
            results.append((channel.name, success))
        return results

    async def _send_with_retry(self, channel: NotificationChannel, notice: Notice) -> bool:
        attempts = self._config.retry_max_attempts
        for attempt in range(attempts):
            try:
                if await channel.send(notice):
                    return True
            except Exception as e:
                _stdlib_logger.warning(
                    "Channel %s send error (attempt %d): %s", channel.name, attempt + 1, e
                )
            if attempt < attempts - 1 and self._config.retry_delay_seconds > 0:
                await asyncio.sleep(self._config.retry_delay_seconds)
        _stdlib_logger.warning(
            "All %d attempts exhausted for notice %r on %s",
            attempts, notice.title, channel.name,
        )
        return False

    async def _persist_error(
        self,
        error: BaseException,
        severity: str,
        context: dict[str, Any],
    ) -> None:
        if self._error_logs is None:
            return
        entry = ErrorLogEntry(
            function_name=context["function_name"],
            error_message=str(error),
            error_type=context.get("error_type", type(error).__name__),
            severity=severity,
            endpoint=context.get("endpoint"),
            status_code=context.get("status_code"),
            attempt=context.get("attempt"),
            context={k: v for k, v in context.items() if isinstance(v, (str, int, float, bool))},
        )
        try:
            await self._error_logs.insert(entry)
        except Exception as e:
            _stdlib_logger.warning("Failed to persist error log: %s", e)
