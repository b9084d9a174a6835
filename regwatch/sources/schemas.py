"""Data models for the source registry.

Maps 1:1 to the ``regulatory_data_sources`` table. Sources are edited by
an external admin tool; the pipeline only writes ``last_successful_fetch``
and ``last_error``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

SourceType = Literal["api", "rss", "scraper"]

VALID_SOURCE_TYPES: frozenset[str] = frozenset({"api", "rss", "scraper"})


@dataclass
class Source:
    """A regulatory data source polled by the pipeline.

    Attributes:
        id: Stable identifier (also used for the cooldown key).
        name: Display name; stored as ``alerts.source``.
        agency: Publishing agency (FDA, USDA, EPA, CDC...).
        region: Region tag (US, EU, Global...).
        type: Connector variant: api, rss, or scraper.
        base_url: Optional prefix joined to relative endpoints.
        endpoints: URLs or paths to fetch; an api source may list several.
        poll_interval_minutes: Cooldown between runs.
        priority: Base urgency score contribution.
        keywords: Source-specific urgency keywords.
        active: Only active sources are scheduled.
        metadata: Connector hints (api_schema, results_key, critical,
            include_keywords, api_key_name, timeout_seconds...).
        fallback_feeds: Endpoint to RSS URL map used when the API degrades.
        last_successful_fetch: Set by the pipeline on success.
        last_error: Set by the pipeline on failure, cleared on success.
    """

    id: str
    name: str
    agency: str
    region: str
    type: str
    base_url: str = ""
    endpoints: list[str] = field(default_factory=list)
    poll_interval_minutes: int = 60
    priority: int = 5
    keywords: list[str] = field(default_factory=list)
    active: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)
    fallback_feeds: dict[str, str] = field(default_factory=dict)
    last_successful_fetch: datetime | None = None
    last_error: str | None = None

    def __post_init__(self) -> None:
        if self.type not in VALID_SOURCE_TYPES:
            raise ValueError(
                f"Invalid source type {self.type!r}. "
                f"Must be one of: {sorted(VALID_SOURCE_TYPES)}"
            )
        if self.poll_interval_minutes <= 0:
            raise ValueError(
                f"poll_interval_minutes must be positive, got {self.poll_interval_minutes}"
            )

    def resolve_url(self, endpoint: str) -> str:
        """Join a relative endpoint onto ``base_url``; absolute URLs pass through."""
        if endpoint.startswith(("http://", "https://")) or not self.base_url:
            return endpoint
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    @property
    def result_key(self) -> str:
        """Key used in the invocation response (``<agency>_<region>``)."""
        return f"{self.agency}_{self.region}"

    @property
    def cooldown_key(self) -> str:
        """``system_settings`` key holding this source's last run timestamp."""
        return f"last_run_{self.id}"

    @property
    def is_critical(self) -> bool:
        """Critical sources run first and sequentially."""
        return bool(self.metadata.get("critical", False))

    @property
    def timeout_seconds(self) -> float | None:
        """Per-source fetch timeout override."""
        value = self.metadata.get("timeout_seconds")
        return float(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "agency": self.agency,
            "region": self.region,
            "type": self.type,
            "base_url": self.base_url,
            "endpoints": list(self.endpoints),
            "poll_interval_minutes": self.poll_interval_minutes,
            "priority": self.priority,
            "keywords": list(self.keywords),
            "active": self.active,
            "metadata": dict(self.metadata),
            "fallback_feeds": dict(self.fallback_feeds),
            "last_successful_fetch": (
                self.last_successful_fetch.isoformat()
                if self.last_successful_fetch
                else None
            ),
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Source":
        """Create a Source from a seed-file or API dictionary."""
        last_fetch = data.get("last_successful_fetch")
        if isinstance(last_fetch, str):
            last_fetch = datetime.fromisoformat(last_fetch)

        return cls(
            id=data["id"],
            name=data["name"],
            agency=data["agency"],
            region=data.get("region", "US"),
            type=data["type"],
            base_url=data.get("base_url", ""),
            endpoints=list(data.get("endpoints", [])),
            poll_interval_minutes=data.get("poll_interval_minutes", 60),
            priority=data.get("priority", 5),
            keywords=list(data.get("keywords", [])),
            active=data.get("active", True),
            metadata=dict(data.get("metadata", {})),
            fallback_feeds=dict(data.get("fallback_feeds", {})),
            last_successful_fetch=last_fetch,
            last_error=data.get("last_error"),
        )
