"""Alert normalization, scoring, deduplication and persistence.

Components:
- Alert: Dataclass mapping to the alerts table
- Urgency / SignalType: Enums for classification output
- ClassifierConfig / DedupConfig: Pydantic settings for scoring and windows
- Classifier: Keyword, recency, region and agency-tier scoring
- Deduplicator: Title/source window and optional URL checks
- AlertRepository: Idempotent inserts and lookups
"""

from regwatch.alerts.classifier import Classifier
from regwatch.alerts.config import ClassifierConfig, DedupConfig
from regwatch.alerts.deduplication import Deduplicator
from regwatch.alerts.normalizer import normalize
from regwatch.alerts.repository import AlertRepository
from regwatch.alerts.schemas import Alert, SignalType, Urgency

__all__ = [
    "Alert",
    "AlertRepository",
    "Classifier",
    "ClassifierConfig",
    "DedupConfig",
    "Deduplicator",
    "SignalType",
    "Urgency",
    "normalize",
]
