"""Source registry: which feeds, APIs and listings to poll, and how.

Components:
- Source: Dataclass mapping to the sources table
- SourcesConfig: Pydantic settings for caching and seeding
- SourcesRepository: CRUD operations for the registry
- SourcesService: Cached access with region/agency filters and seed support
"""

from regwatch.sources.config import SourcesConfig
from regwatch.sources.repository import SourcesRepository
from regwatch.sources.schemas import Source
from regwatch.sources.service import SourcesService

__all__ = [
    "Source",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
]
