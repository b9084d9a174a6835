"""Per-source cooldown timestamps kept in ``system_settings``.

Invocations are stateless, so the last-run time lives in the database
under ``last_run_<source_id>`` as ``{"timestamp": <epoch ms>}``.
"""

import logging
from datetime import datetime, timezone

from regwatch.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS system_settings (
    setting_key     TEXT PRIMARY KEY,
    setting_value   JSONB NOT NULL,
    description     TEXT,
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


def to_epoch_ms(when: datetime) -> int:
    return int(when.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class CooldownStore:
    """Reads and writes last-run timestamps."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)

    async def get_last_run(self, key: str) -> datetime | None:
        """Last run time, or None if never run (or reset)."""
        value = await self._db.fetchval(
            "SELECT setting_value FROM system_settings WHERE setting_key = $1", key
        )
        if not value:
            return None
        timestamp = value.get("timestamp") if isinstance(value, dict) else None
        if not timestamp:
            return None
        return from_epoch_ms(timestamp)

    async def set_last_run(self, key: str, when: datetime | None = None) -> None:
        when = when or datetime.now(timezone.utc)
        await self._write(key, to_epoch_ms(when))

    async def reset(self, key: str) -> None:
        """Clear the cooldown so the source is due immediately."""
        await self._write(key, 0)

    async def _write(self, key: str, epoch_ms: int) -> None:
        sql = """
            INSERT INTO system_settings (setting_key, setting_value, description, updated_at)
            VALUES ($1, $2, $3, NOW())
            ON CONFLICT (setting_key) DO UPDATE SET
                setting_value = EXCLUDED.setting_value,
                updated_at = NOW()
        """
        await self._db.execute(
            sql, key, {"timestamp": epoch_ms}, "Last pipeline run for source"
        )
