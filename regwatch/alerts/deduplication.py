"""
Exact-match duplicate detection against the persisted store.

An alert is a duplicate when an existing row has:
- the same (title, source) with a published_date within
  ``title_window_days`` of the new alert's, or
- the same external_url, created within ``url_window_days``, for
  sources whose links identify a single notice.

No fuzzy matching: a slightly reworded title is a new alert.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from regwatch.alerts.config import DedupConfig
from regwatch.alerts.repository import AlertRepository
from regwatch.alerts.schemas import Alert

logger = logging.getLogger(__name__)


@dataclass
class DedupStats:
    """Counters for one pipeline run."""

    checked: int = 0
    by_title: int = 0
    by_url: int = 0

    @property
    def duplicates(self) -> int:
        return self.by_title + self.by_url


class Deduplicator:
    """Checks alerts against the store before insert."""

    def __init__(
        self,
        repository: AlertRepository,
        config: DedupConfig | None = None,
    ) -> None:
        self._repo = repository
        self._config = config or DedupConfig()
        self.stats = DedupStats()

    async def is_duplicate(
        self,
        alert: Alert,
        *,
        match_url: bool = False,
        now: datetime | None = None,
    ) -> bool:
        """
        True if the store already holds this notice.

        Args:
            alert: Normalized alert
            match_url: Also match on external_url (sources whose links
                are unique per notice, such as warning letters)
            now: Reference time for the URL window
        """
        self.stats.checked += 1
        window = timedelta(days=self._config.title_window_days)
        existing = await self._repo.find_by_title_source(
            alert.title,
            alert.source,
            alert.published_date - window,
            alert.published_date + window,
        )
        if existing is not None:
            self.stats.by_title += 1
            logger.debug(
                "Duplicate by title/source: %r (%s), existing id=%s",
                alert.title, alert.source, existing.id,
            )
            return True

        if match_url and alert.external_url:
            now = now or datetime.now(timezone.utc)
            since = now - timedelta(days=self._config.url_window_days)
            existing = await self._repo.find_by_external_url(alert.external_url, since)
            if existing is not None:
                self.stats.by_url += 1
                logger.debug(
                    "Duplicate by url: %s, existing id=%s",
                    alert.external_url, existing.id,
                )
                return True

        return False
