"""Alert repository: insert-only persistence and duplicate lookups.

The live ``alerts`` table and the ``test_mode`` scratch table share one
shape; a repository instance is bound to one of them. A unique index on
``(title, source, published_date)`` reconciles the rare race between two
concurrent runs inserting the same notice.
"""

import logging
import re
from datetime import datetime

import asyncpg

from regwatch.alerts.schemas import Alert, SignalType, Urgency
from regwatch.storage.database import Database

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "alerts"
DEFAULT_SCRATCH_TABLE = "alerts_test_runs"

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id              BIGSERIAL PRIMARY KEY,
    title           TEXT NOT NULL,
    source          TEXT NOT NULL,
    agency          TEXT NOT NULL,
    region          TEXT NOT NULL,
    urgency         TEXT NOT NULL,
    urgency_score   INTEGER NOT NULL DEFAULT 0,
    signal_type     TEXT NOT NULL DEFAULT 'Market Signal',
    summary         TEXT,
    published_date  TIMESTAMPTZ NOT NULL,
    external_url    TEXT,
    full_content    JSONB NOT NULL DEFAULT '{{}}',
    source_id       TEXT,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_{table}_title_source_published
    ON {table} (title, source, published_date);
CREATE INDEX IF NOT EXISTS idx_{table}_source_created
    ON {table} (source, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_{table}_external_url
    ON {table} (external_url) WHERE external_url IS NOT NULL;
"""


def _record_to_alert(record: asyncpg.Record) -> Alert:
    return Alert(
        id=record["id"],
        title=record["title"],
        source=record["source"],
        agency=record["agency"],
        region=record["region"],
        urgency=Urgency(record["urgency"]),
        urgency_score=record["urgency_score"],
        signal_type=SignalType(record["signal_type"]),
        summary=record["summary"] or "",
        published_date=record["published_date"],
        external_url=record["external_url"],
        full_content=dict(record["full_content"]) if record["full_content"] else {},
        source_id=record["source_id"],
        created_at=record["created_at"],
    )


class AlertRepository:
    """Persistence for Alert rows in ``alerts`` or the scratch table."""

    def __init__(self, database: Database, table: str = DEFAULT_TABLE) -> None:
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name {table!r}")
        self._db = database
        self._table = table

    @property
    def table(self) -> str:
        return self._table

    async def create_table(self) -> None:
        """Create the table and its indexes if they don't exist."""
        await self._db.execute(_CREATE_TABLE_SQL.format(table=self._table))

    async def insert(self, alert: Alert) -> bool:
        """
        Insert an alert unless the unique index already holds it.

        Returns:
            True if a row was written. Sets ``alert.id`` on success.
        """
        sql = f"""
            INSERT INTO {self._table} (
                title, source, agency, region, urgency, urgency_score,
                signal_type, summary, published_date, external_url,
                full_content, source_id, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
            ON CONFLICT (title, source, published_date) DO NOTHING
            RETURNING id
        """
        alert_id = await self._db.fetchval(
            sql,
            alert.title,
            alert.source,
            alert.agency,
            alert.region,
            alert.urgency.value,
            alert.urgency_score,
            alert.signal_type.value,
            alert.summary,
            alert.published_date,
            alert.external_url,
            alert.full_content,
            alert.source_id,
            alert.created_at,
        )
        if alert_id is None:
            logger.debug("Insert of %r from %s hit unique index", alert.title, alert.source)
            return False
        alert.id = alert_id
        return True

    async def find_by_title_source(
        self,
        title: str,
        source: str,
        start: datetime,
        end: datetime,
    ) -> Alert | None:
        """
        Most recent alert with this exact (title, source) whose
        ``published_date`` falls in [start, end].
        """
        sql = f"""
            SELECT * FROM {self._table}
            WHERE title = $1 AND source = $2
              AND published_date BETWEEN $3 AND $4
            ORDER BY published_date DESC
            LIMIT 1
        """
        row = await self._db.fetchrow(sql, title, source, start, end)
        return _record_to_alert(row) if row else None

    async def find_by_external_url(self, url: str, since: datetime) -> Alert | None:
        """Most recent alert with this ``external_url`` created since ``since``."""
        sql = f"""
            SELECT * FROM {self._table}
            WHERE external_url = $1 AND created_at >= $2
            ORDER BY created_at DESC
            LIMIT 1
        """
        row = await self._db.fetchrow(sql, url, since)
        return _record_to_alert(row) if row else None
