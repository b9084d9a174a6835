"""Fetching and parsing: HTTP retries, RSS, JSON APIs and HTML listings."""

from regwatch.ingestion.connectors import Connector, create_connector
from regwatch.ingestion.errors import IngestionError
from regwatch.ingestion.http_client import HTTPClient, RetryConfig
from regwatch.ingestion.schemas import Empty, Err, FetchOrigin, Ok, RawItem

__all__ = [
    "Connector",
    "Empty",
    "Err",
    "FetchOrigin",
    "HTTPClient",
    "IngestionError",
    "Ok",
    "RawItem",
    "RetryConfig",
    "create_connector",
]
