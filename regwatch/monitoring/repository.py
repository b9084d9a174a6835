"""Repositories for ``data_freshness`` and ``error_logs``."""

import logging

import asyncpg

from regwatch.monitoring.schemas import ErrorLogEntry, HealthRecord
from regwatch.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_FRESHNESS_SQL = """
CREATE TABLE IF NOT EXISTS data_freshness (
    source_name             TEXT PRIMARY KEY,
    source_id               TEXT,
    last_attempt            TIMESTAMPTZ NOT NULL,
    last_successful_fetch   TIMESTAMPTZ,
    fetch_status            TEXT NOT NULL,
    records_fetched         INTEGER NOT NULL DEFAULT 0,
    total_records_fetched   BIGINT NOT NULL DEFAULT 0,
    health_state            TEXT NOT NULL DEFAULT 'healthy',
    consecutive_failures    INTEGER NOT NULL DEFAULT 0,
    last_error              TEXT,
    updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_CREATE_ERROR_LOGS_SQL = """
CREATE TABLE IF NOT EXISTS error_logs (
    id              BIGSERIAL PRIMARY KEY,
    function_name   TEXT NOT NULL,
    error_message   TEXT NOT NULL,
    error_type      TEXT NOT NULL,
    severity        TEXT NOT NULL,
    endpoint        TEXT,
    status_code     INTEGER,
    attempt         INTEGER,
    context         JSONB NOT NULL DEFAULT '{}',
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_error_logs_created ON error_logs (created_at DESC);
"""


def _record_to_health(record: asyncpg.Record) -> HealthRecord:
    return HealthRecord(
        source_name=record["source_name"],
        source_id=record["source_id"],
        last_attempt=record["last_attempt"],
        last_successful_fetch=record["last_successful_fetch"],
        fetch_status=record["fetch_status"],
        records_fetched=record["records_fetched"],
        total_records_fetched=record["total_records_fetched"],
        health_state=record["health_state"],
        consecutive_failures=record["consecutive_failures"],
        last_error=record["last_error"],
    )


class FreshnessRepository:
    """One ``data_freshness`` row per source, upserted every run."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_FRESHNESS_SQL)

    async def get(self, source_name: str) -> HealthRecord | None:
        row = await self._db.fetchrow(
            "SELECT * FROM data_freshness WHERE source_name = $1", source_name
        )
        return _record_to_health(row) if row else None

    async def upsert(self, record: HealthRecord) -> None:
        """
        Write the latest run's health.

        ``last_successful_fetch`` is only overwritten when the new value
        is set; ``total_records_fetched`` accumulates in SQL.
        """
        sql = """
            INSERT INTO data_freshness (
                source_name, source_id, last_attempt, last_successful_fetch,
                fetch_status, records_fetched, total_records_fetched,
                health_state, consecutive_failures, last_error, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $6, $7, $8, $9, NOW())
            ON CONFLICT (source_name) DO UPDATE SET
                source_id = EXCLUDED.source_id,
                last_attempt = EXCLUDED.last_attempt,
                last_successful_fetch = COALESCE(
                    EXCLUDED.last_successful_fetch,
                    data_freshness.last_successful_fetch
                ),
                fetch_status = EXCLUDED.fetch_status,
                records_fetched = EXCLUDED.records_fetched,
                total_records_fetched =
                    data_freshness.total_records_fetched + EXCLUDED.records_fetched,
                health_state = EXCLUDED.health_state,
                consecutive_failures = EXCLUDED.consecutive_failures,
                last_error = EXCLUDED.last_error,
                updated_at = NOW()
        """
        await self._db.execute(
            sql,
            record.source_name,
            record.source_id,
            record.last_attempt,
            record.last_successful_fetch,
            record.fetch_status,
            record.records_fetched,
            record.health_state,
            record.consecutive_failures,
            record.last_error,
        )

    async def list_all(self) -> list[HealthRecord]:
        rows = await self._db.fetch("SELECT * FROM data_freshness ORDER BY source_name")
        return [_record_to_health(r) for r in rows]


class ErrorLogRepository:
    """Append-only store of structured errors."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_ERROR_LOGS_SQL)

    async def insert(self, entry: ErrorLogEntry) -> None:
        sql = """
            INSERT INTO error_logs (
                function_name, error_message, error_type, severity,
                endpoint, status_code, attempt, context, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        """
        await self._db.execute(
            sql,
            entry.function_name,
            entry.error_message[:2000],
            entry.error_type,
            entry.severity,
            entry.endpoint,
            entry.status_code,
            entry.attempt,
            entry.context,
            entry.created_at,
        )
