"""Database repository for the regulatory_data_sources table."""

import logging
from datetime import datetime, timezone
from typing import Any

from regwatch.sources.schemas import Source
from regwatch.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS regulatory_data_sources (
    id                       TEXT PRIMARY KEY,
    name                     TEXT NOT NULL,
    agency                   TEXT NOT NULL,
    region                   TEXT NOT NULL DEFAULT 'US',
    source_type              TEXT NOT NULL,
    base_url                 TEXT NOT NULL DEFAULT '',
    rss_feeds                TEXT[] NOT NULL DEFAULT '{}',
    polling_interval_minutes INTEGER NOT NULL DEFAULT 60
        CHECK (polling_interval_minutes > 0),
    priority                 INTEGER NOT NULL DEFAULT 5,
    keywords                 TEXT[] NOT NULL DEFAULT '{}',
    is_active                BOOLEAN NOT NULL DEFAULT TRUE,
    metadata                 JSONB NOT NULL DEFAULT '{}',
    fallback_feeds           JSONB NOT NULL DEFAULT '{}',
    last_successful_fetch    TIMESTAMPTZ,
    last_error               TEXT,
    created_at               TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at               TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_reg_sources_active
    ON regulatory_data_sources(is_active) WHERE is_active = TRUE;
"""

_UPSERT_SQL = """
INSERT INTO regulatory_data_sources (
    id, name, agency, region, source_type, base_url, rss_feeds,
    polling_interval_minutes, priority, keywords, is_active,
    metadata, fallback_feeds
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
ON CONFLICT (id) DO UPDATE SET
    name = EXCLUDED.name,
    agency = EXCLUDED.agency,
    region = EXCLUDED.region,
    source_type = EXCLUDED.source_type,
    base_url = EXCLUDED.base_url,
    rss_feeds = EXCLUDED.rss_feeds,
    polling_interval_minutes = EXCLUDED.polling_interval_minutes,
    priority = EXCLUDED.priority,
    keywords = EXCLUDED.keywords,
    is_active = EXCLUDED.is_active,
    metadata = EXCLUDED.metadata,
    fallback_feeds = EXCLUDED.fallback_feeds,
    updated_at = NOW()
"""


def _record_to_source(record: Any) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    return Source(
        id=record["id"],
        name=record["name"],
        agency=record["agency"],
        region=record["region"],
        type=record["source_type"],
        base_url=record["base_url"] or "",
        endpoints=list(record["rss_feeds"] or []),
        poll_interval_minutes=record["polling_interval_minutes"],
        priority=record["priority"],
        keywords=list(record["keywords"] or []),
        active=record["is_active"],
        metadata=dict(record["metadata"]) if record["metadata"] else {},
        fallback_feeds=dict(record["fallback_feeds"]) if record["fallback_feeds"] else {},
        last_successful_fetch=record["last_successful_fetch"],
        last_error=record["last_error"],
    )


def _source_args(source: Source) -> tuple:
    """Positional parameters for ``_UPSERT_SQL``."""
    return (
        source.id,
        source.name,
        source.agency,
        source.region,
        source.type,
        source.base_url,
        source.endpoints,
        source.poll_interval_minutes,
        source.priority,
        source.keywords,
        source.active,
        source.metadata,
        source.fallback_feeds,
    )


class SourcesRepository:
    """CRUD operations for the regulatory_data_sources table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Regulatory sources table ensured")

    async def upsert(self, source: Source) -> None:
        """Insert or update a single source."""
        await self._db.execute(_UPSERT_SQL, *_source_args(source))

    async def bulk_upsert(self, sources: list[Source]) -> int:
        """Insert or update multiple sources in one transaction.

        Returns the number of sources processed.
        """
        if not sources:
            return 0

        async with self._db.transaction() as conn:
            await conn.executemany(
                _UPSERT_SQL, [_source_args(s) for s in sources]
            )
        logger.info("Bulk upserted %d sources", len(sources))
        return len(sources)

    async def list_active(
        self,
        region: str | None = None,
        agency: str | None = None,
    ) -> list[Source]:
        """Active sources, optionally filtered by region and agency.

        Filters are case-insensitive exact matches.
        """
        conditions = ["is_active = TRUE"]
        params: list[Any] = []
        idx = 1

        if region:
            conditions.append(f"LOWER(region) = LOWER(${idx})")
            params.append(region)
            idx += 1

        if agency:
            conditions.append(f"LOWER(agency) = LOWER(${idx})")
            params.append(agency)
            idx += 1

        sql = f"""
            SELECT * FROM regulatory_data_sources
            WHERE {" AND ".join(conditions)}
            ORDER BY priority DESC, id
        """
        rows = await self._db.fetch(sql, *params)
        return [_record_to_source(r) for r in rows]

    async def mark_success(
        self, source_id: str, fetched_at: datetime | None = None
    ) -> None:
        """Record a successful fetch and clear the last error."""
        await self._db.execute(
            """
            UPDATE regulatory_data_sources
            SET last_successful_fetch = $2, last_error = NULL, updated_at = NOW()
            WHERE id = $1
            """,
            source_id,
            fetched_at or datetime.now(timezone.utc),
        )

    async def mark_error(self, source_id: str, error: str) -> None:
        """Record the most recent failure message."""
        await self._db.execute(
            """
            UPDATE regulatory_data_sources
            SET last_error = $2, updated_at = NOW()
            WHERE id = $1
            """,
            source_id,
            error[:1000],
        )

    async def count(self) -> int:
        """Count total sources in the table."""
        return await self._db.fetchval("SELECT COUNT(*) FROM regulatory_data_sources")
