"""Schema definitions for alert records.

Maps 1:1 to the ``alerts`` table (and its ``test_mode`` scratch twin).
An alert is created only by the pipeline and never deleted by it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Urgency(str, Enum):
    """Ordinal severity band derived from the urgency score."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _URGENCY_RANK[self]


_URGENCY_RANK = {
    Urgency.LOW: 0,
    Urgency.MEDIUM: 1,
    Urgency.HIGH: 2,
    Urgency.CRITICAL: 3,
}


class SignalType(str, Enum):
    """Coarse regulatory nature of an alert, in detection precedence order."""

    RECALL = "Recall"
    WARNING_LETTER = "Warning Letter"
    GUIDANCE = "Guidance"
    RULE_CHANGE = "Rule Change"
    MARKET_SIGNAL = "Market Signal"


@dataclass
class Alert:
    """A normalized regulatory notice.

    Attributes:
        title: Headline.
        source: Source display name (re-attributed for relayed content).
        agency: Originating agency.
        region: Region tag.
        published_date: Publication time (UTC); "now" when unparsable.
        external_url: Link to the notice.
        full_content: JSON snapshot of the raw item plus classification extras.
        urgency: Band; filled in by the classifier.
        urgency_score: Raw weighted score.
        signal_type: Filled in by the classifier.
        summary: Short summary (AI or truncated description).
        description: Plain-text body used for scoring and summaries.
        source_id: Registry id of the source that produced the item.
        id: Database id once persisted.
        created_at: Insert time.
    """

    title: str
    source: str
    agency: str
    region: str
    published_date: datetime
    external_url: str | None = None
    full_content: dict[str, Any] = field(default_factory=dict)
    urgency: Urgency = Urgency.LOW
    urgency_score: int = 0
    signal_type: SignalType = SignalType.MARKET_SIGNAL
    summary: str = ""
    description: str = ""
    source_id: str | None = None
    id: int | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("Alert title must not be empty")
        if self.published_date.tzinfo is None:
            self.published_date = self.published_date.replace(tzinfo=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "source": self.source,
            "agency": self.agency,
            "region": self.region,
            "urgency": self.urgency.value,
            "urgency_score": self.urgency_score,
            "signal_type": self.signal_type.value,
            "summary": self.summary,
            "published_date": self.published_date.isoformat(),
            "external_url": self.external_url,
            "full_content": self.full_content,
            "created_at": self.created_at.isoformat(),
        }
