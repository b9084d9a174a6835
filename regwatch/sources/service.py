"""Source registry service with caching and seed support."""

import json
import logging
import time
from pathlib import Path

from regwatch.sources.config import SourcesConfig
from regwatch.sources.repository import SourcesRepository
from regwatch.sources.schemas import Source
from regwatch.storage.database import Database

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "seed_sources.json"


def load_seed_sources(path: Path | None = None) -> list[Source]:
    """Parse the JSON seed catalog into Source objects."""
    seed_path = path or _SEED_FILE
    with open(seed_path) as f:
        entries = json.load(f)
    return [Source.from_dict(e) for e in entries]


def _matches(value: str, wanted: str | None) -> bool:
    return wanted is None or value.lower() == wanted.lower()


class SourcesService:
    """Cached access to the active source catalog with seed support.

    The active list is cached for ``cache_ttl_seconds``; region and agency
    filters are applied to the cached list so filtered invocations do not
    each hit the database.
    """

    def __init__(
        self,
        database: Database,
        config: SourcesConfig | None = None,
    ) -> None:
        self._config = config or SourcesConfig()
        self._repo = SourcesRepository(database)

        self._active_cache: list[Source] | None = None
        self._active_cached_at: float = 0.0

    @property
    def repository(self) -> SourcesRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    # ── Cached accessors ────────────────────────────────────────

    async def get_active_sources(
        self,
        region: str | None = None,
        agency: str | None = None,
    ) -> list[Source]:
        """Active sources matching the optional filters (cached)."""
        now = time.monotonic()
        ttl = self._config.cache_ttl_seconds
        if self._active_cache is None or (now - self._active_cached_at) >= ttl:
            self._active_cache = await self._repo.list_active()
            self._active_cached_at = now

        return [
            s for s in self._active_cache
            if _matches(s.region, region) and _matches(s.agency, agency)
        ]

    def invalidate_cache(self) -> None:
        """Force-clear the cache so next access hits the DB."""
        self._active_cache = None
        self._active_cached_at = 0.0

    # ── Pipeline status writes ──────────────────────────────────

    async def record_success(self, source: Source) -> None:
        """Stamp ``last_successful_fetch`` and clear ``last_error``."""
        await self._repo.mark_success(source.id)

    async def record_error(self, source: Source, error: str) -> None:
        """Store the latest failure message for a source."""
        await self._repo.mark_error(source.id, error)

    # ── Seed ────────────────────────────────────────────────────

    async def seed_from_json(self, path: Path | None = None) -> int:
        """Load sources from a JSON file into the database.

        Returns the number of sources upserted.
        """
        sources = load_seed_sources(path)
        count = await self._repo.bulk_upsert(sources)
        self.invalidate_cache()
        logger.info("Seeded %d sources from %s", count, path or _SEED_FILE)
        return count

    async def ensure_seeded(self) -> None:
        """Seed from default JSON if the table is empty and seed_on_init is True."""
        if not self._config.seed_on_init:
            return

        existing = await self._repo.count()
        if existing > 0:
            logger.debug("Sources table has %d rows, skipping seed", existing)
            return

        logger.info("Sources table empty, seeding from default JSON")
        await self.seed_from_json()
