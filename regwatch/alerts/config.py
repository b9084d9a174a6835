"""Classification and deduplication configuration.

The urgency weights and band cutoffs are a starting policy carried over
from the keyword heuristics, not a calibrated model. Every constant can
be overridden via ``CLASSIFIER_*`` / ``DEDUP_*`` environment variables.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_URGENT_KEYWORDS = [
    "recall",
    "outbreak",
    "warning",
    "alert",
    "urgent",
    "immediate",
    "critical",
    "emergency",
]

DEFAULT_AGENCY_KEYWORD_TIERS: dict[str, dict[str, list[str]]] = {
    "GSA": {
        "critical": ["contract termination", "debarment", "suspension", "fraud"],
        "high": ["schedule modification", "price reduction", "compliance", "audit"],
        "medium": ["solicitation", "acquisition", "procurement", "policy update"],
    },
}


class ClassifierConfig(BaseSettings):
    """Urgency scoring weights, keyword lists and band thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="CLASSIFIER_",
        case_sensitive=False,
        extra="ignore",
    )

    default_priority: int = Field(
        default=5,
        description="Base score for sources without a priority",
    )
    urgent_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_URGENT_KEYWORDS))
    urgent_keyword_weight: int = Field(default=2, ge=0)
    source_keyword_weight: int = Field(default=1, ge=0)

    # Recency bonus
    fresh_hours: int = Field(default=24, ge=1)
    fresh_bonus: int = Field(default=3, ge=0)
    recent_hours: int = Field(default=72, ge=1)
    recent_bonus: int = Field(default=1, ge=0)

    # Region bonus
    region_bonuses: dict[str, int] = Field(
        default_factory=lambda: {"Global": 2, "US": 1},
    )

    # Agency keyword tiers: agency -> tier -> keywords
    agency_keyword_tiers: dict[str, dict[str, list[str]]] = Field(
        default_factory=lambda: {
            agency: {tier: list(words) for tier, words in tiers.items()}
            for agency, tiers in DEFAULT_AGENCY_KEYWORD_TIERS.items()
        },
    )
    tier_bonuses: dict[str, int] = Field(
        default_factory=lambda: {"critical": 6, "high": 4, "medium": 2},
    )

    # Band cutoffs (score >= threshold)
    medium_threshold: int = Field(default=9)
    high_threshold: int = Field(default=14)
    critical_threshold: int = Field(default=20)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "ClassifierConfig":
        if not self.medium_threshold <= self.high_threshold <= self.critical_threshold:
            raise ValueError(
                "Thresholds must satisfy medium <= high <= critical, got "
                f"{self.medium_threshold}/{self.high_threshold}/{self.critical_threshold}"
            )
        if self.recent_hours < self.fresh_hours:
            raise ValueError("recent_hours must be >= fresh_hours")
        return self


class DedupConfig(BaseSettings):
    """Rolling windows for duplicate detection."""

    model_config = SettingsConfigDict(
        env_prefix="DEDUP_",
        case_sensitive=False,
        extra="ignore",
    )

    title_window_days: int = Field(
        default=7,
        ge=1,
        le=365,
        description="Window for exact (title, source) matches",
    )
    url_window_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Window for external_url matches",
    )
