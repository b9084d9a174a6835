"""
PostgreSQL connection pool for the alert store.

The pipeline only appends or upserts; concurrent invocations are
reconciled by unique constraints rather than application locks.
JSONB columns (``full_content``, ``metadata``, ``setting_value``...)
round-trip as Python dicts.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from regwatch.config.settings import get_settings

logger = logging.getLogger(__name__)

# The store itself is unreachable, as opposed to one bad query
CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    OSError,
)


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


class Database:
    """
    asyncpg pool wrapper shared by every repository.

    Usable as an async context manager for one-shot invocations (CLI);
    the API keeps one connected instance for the process lifetime.

    Usage:
        async with Database() as db:
            await AlertRepository(db).insert(alert)
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = settings.db_command_timeout_seconds

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Create the pool. Calling twice is a no-op."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
                init=_init_connection,
                server_settings={"application_name": "regwatch"},
            )
        except Exception as e:
            logger.error("Failed to connect to database: %s", e)
            raise
        logger.info("Database connected (pool: %d-%d)", self._min_size, self._max_size)

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a pooled connection inside a transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    # ── Query helpers ───────────────────────────────────────────

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement; returns the PostgreSQL status string."""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if ``SELECT 1`` succeeds."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return False
