"""
Dependency injection for FastAPI endpoints.
"""

from regwatch.monitoring.repository import FreshnessRepository
from regwatch.pipeline.orchestrator import PipelineOrchestrator
from regwatch.storage.database import Database

# Global instances (initialized on first request)
_database: Database | None = None
_orchestrator: PipelineOrchestrator | None = None


def _shared_database() -> Database:
    global _database

    if _database is None:
        _database = Database()

    return _database


async def get_database() -> Database:
    """Get the shared database connection pool, connecting it if needed."""
    database = _shared_database()
    await database.connect()
    return database


async def get_orchestrator() -> PipelineOrchestrator:
    """
    Get pipeline orchestrator instance.

    The orchestrator holds no per-run state, so one instance serves
    every request. It connects the shared pool itself at the start of
    each run, so an unreachable store fails the run rather than the
    dependency.
    """
    global _orchestrator

    if _orchestrator is None:
        _orchestrator = PipelineOrchestrator(_shared_database())

    return _orchestrator


async def get_freshness_repository() -> FreshnessRepository:
    return FreshnessRepository(await get_database())


async def cleanup_dependencies() -> None:
    """Clean up global instances on shutdown."""
    global _database, _orchestrator

    _orchestrator = None

    if _database is not None:
        await _database.close()
        _database = None
