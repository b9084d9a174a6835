"""Operational notices to Slack and PagerDuty.

Components:
- Notice: Channel-agnostic notification payload
- SlackChannel / PagerDutyChannel: Delivery channels
- BreakerChannel: Circuit breaker wrapper for channels
- NotificationConfig / NotificationDispatcher: Severity routing and retries
"""

from regwatch.notifications.channels import (
    BreakerChannel,
    NotificationChannel,
    PagerDutyChannel,
    SlackChannel,
)
from regwatch.notifications.dispatcher import NotificationConfig, NotificationDispatcher
from regwatch.notifications.schemas import Notice

__all__ = [
    "BreakerChannel",
    "Notice",
    "NotificationChannel",
    "NotificationConfig",
    "NotificationDispatcher",
    "PagerDutyChannel",
    "SlackChannel",
]
