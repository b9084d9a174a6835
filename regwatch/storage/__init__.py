"""Storage layer - PostgreSQL connection pool."""

from regwatch.storage.database import Database

__all__ = ["Database"]
