"""Notice payloads delivered by notification channels."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

NoticeKind = Literal["failure", "state_change", "success"]

SEVERITY_COLORS: dict[str, str] = {
    "info": "#36a64f",
    "warning": "#ffcc00",
    "error": "#ff9900",
    "critical": "#ff0000",
}

# Health/circuit state -> colour of the state-change notice
STATE_COLORS: dict[str, str] = {
    "OPEN": "#ff0000",
    "unhealthy": "#ff0000",
    "CLOSED": "#36a64f",
    "healthy": "#36a64f",
}
DEFAULT_STATE_COLOR = "#ffcc00"


@dataclass
class Notice:
    """One operator-facing message.

    Attributes:
        kind: failure / state_change / success.
        title: Headline.
        message: Body text.
        severity: info / warning / error / critical.
        function_name: Operation that produced the notice.
        error_type: Exception class name, for failures.
        endpoint: URL involved, if any.
        status_code: HTTP status, if any.
        details: Extra key/value context.
        timestamp: When the notice was raised.
    """

    kind: str
    title: str
    message: str
    severity: str = "info"
    function_name: str = "pipeline"
    error_type: str | None = None
    endpoint: str | None = None
    status_code: int | None = None
    color: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def display_color(self) -> str:
        return self.color or SEVERITY_COLORS.get(self.severity, SEVERITY_COLORS["error"])

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "function_name": self.function_name,
            "error_type": self.error_type,
            "endpoint": self.endpoint,
            "status_code": self.status_code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }
