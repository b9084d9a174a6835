"""
Heuristic urgency scoring, signal-type detection and agency re-attribution.

Score = source priority
      + urgent keyword hits x urgent weight
      + source keyword hits x source weight
      + agency tier bonus
      + recency bonus (fresh / recent)
      + region bonus

Every term is non-negative and the band is a monotone step function of
the score, so adding an urgent keyword never lowers the band.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable

from regwatch.alerts.config import ClassifierConfig
from regwatch.alerts.schemas import Alert, SignalType, Urgency
from regwatch.sources.schemas import Source

logger = logging.getLogger(__name__)


# ── Signal type ─────────────────────────────────────────────

_SIGNAL_RULES: tuple[tuple[SignalType, re.Pattern[str]], ...] = (
    (SignalType.RECALL, re.compile(r"recall|withdrawn|withdrawal")),
    (SignalType.WARNING_LETTER, re.compile(r"warning letter|warning to")),
    (SignalType.GUIDANCE, re.compile(r"guidance")),
    (
        SignalType.RULE_CHANGE,
        re.compile(r"\brule\b|\brules\b|rulemaking|regulation|\bcfr\b|federal register"),
    ),
)


def detect_signal_type(text: str) -> SignalType:
    """First matching rule in precedence order; Market Signal otherwise."""
    lowered = text.lower()
    for signal, pattern in _SIGNAL_RULES:
        if pattern.search(lowered):
            return signal
    return SignalType.MARKET_SIGNAL


# ── Re-attribution ──────────────────────────────────────────

_FDA_MARKERS = ("fda", "food and drug administration")
_FDA_RECALL_TOPICS = ("food", "drug", "device", "allergy", "undeclared")
_USDA_MARKERS = ("usda", "fsis", "meat", "poultry")
_USDA_RECALL_TOPICS = ("beef", "chicken", "pork", "ground")


def _mentions(markers: tuple[str, ...], topics: tuple[str, ...]) -> Callable[[str], bool]:
    return lambda text: any(m in text for m in markers) or (
        "recall" in text and any(t in text for t in topics)
    )


# Relay agency -> (originating agency, predicate on lowered text), first
# match wins. Meat and poultry recalls belong to USDA even when the text
# also says "food".
_REATTRIBUTION_RULES: dict[str, list[tuple[str, Callable[[str], bool]]]] = {
    "CDC": [
        ("USDA", _mentions(_USDA_MARKERS, _USDA_RECALL_TOPICS)),
        ("FDA", _mentions(_FDA_MARKERS, _FDA_RECALL_TOPICS)),
    ],
}


def reattribute_agency(agency: str, text: str) -> str | None:
    """
    Originating agency for content relayed by ``agency``, if any.

    A CDC feed echoing an FDA or USDA recall is re-tagged with the
    issuing agency so consumers filtering by authority see it there.
    """
    lowered = text.lower()
    for target, predicate in _REATTRIBUTION_RULES.get(agency.upper(), []):
        if predicate(lowered):
            return target
    return None


# ── Urgency ─────────────────────────────────────────────────


def count_hits(text: str, keywords: list[str]) -> int:
    """Number of distinct keywords present in ``text`` (case-insensitive)."""
    lowered = text.lower()
    return sum(1 for k in {k.lower() for k in keywords if k} if k in lowered)


class Classifier:
    """
    Assigns urgency and signal type to normalized alerts.

    Example:
        classifier = Classifier()
        classifier.classify(alert, source)
        alert.urgency  # Urgency.HIGH
    """

    def __init__(self, config: ClassifierConfig | None = None) -> None:
        self._config = config or ClassifierConfig()

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    def recency_bonus(self, published: datetime, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        age_hours = (now - published).total_seconds() / 3600
        if age_hours <= self._config.fresh_hours:
            return self._config.fresh_bonus
        if age_hours <= self._config.recent_hours:
            return self._config.recent_bonus
        return 0

    def agency_bonus(self, agency: str, text: str) -> int:
        """Bonus of the highest keyword tier matched for ``agency``."""
        tiers = self._config.agency_keyword_tiers.get(agency.upper())
        if not tiers:
            return 0
        lowered = text.lower()
        best = 0
        for tier, words in tiers.items():
            if any(w.lower() in lowered for w in words):
                best = max(best, self._config.tier_bonuses.get(tier, 0))
        return best

    def score(
        self,
        text: str,
        *,
        priority: int | None,
        source_keywords: list[str],
        agency: str,
        region: str,
        published: datetime,
        now: datetime | None = None,
    ) -> int:
        """Weighted urgency score; see module docstring."""
        cfg = self._config
        total = priority if priority is not None else cfg.default_priority
        total += count_hits(text, cfg.urgent_keywords) * cfg.urgent_keyword_weight
        total += count_hits(text, source_keywords) * cfg.source_keyword_weight
        total += self.agency_bonus(agency, text)
        total += self.recency_bonus(published, now)
        total += cfg.region_bonuses.get(region, 0)
        return total

    def band(self, score: int) -> Urgency:
        """Map a score onto its urgency band."""
        cfg = self._config
        if score >= cfg.critical_threshold:
            return Urgency.CRITICAL
        if score >= cfg.high_threshold:
            return Urgency.HIGH
        if score >= cfg.medium_threshold:
            return Urgency.MEDIUM
        return Urgency.LOW

    def classify(
        self,
        alert: Alert,
        source: Source,
        now: datetime | None = None,
    ) -> Alert:
        """
        Fill in urgency, score, signal type and re-attributed agency.

        Mutates and returns ``alert``.
        """
        text = f"{alert.title} {alert.description}"

        original_agency = reattribute_agency(alert.agency, text)
        if original_agency and original_agency != alert.agency:
            logger.debug(
                "Re-attributing %r from %s to %s", alert.title, alert.agency, original_agency
            )
            alert.full_content["relayed_by"] = alert.agency
            alert.full_content["relay_source"] = alert.source
            alert.agency = original_agency
            alert.source = original_agency

        score = self.score(
            text,
            priority=source.priority,
            source_keywords=source.keywords,
            agency=alert.agency,
            region=alert.region,
            published=alert.published_date,
            now=now,
        )
        alert.urgency_score = score
        alert.urgency = self.band(score)
        alert.signal_type = detect_signal_type(text)
        alert.full_content["signal_type"] = alert.signal_type.value
        return alert
