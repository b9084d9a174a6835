"""
Connector interface and its three source-type variants.

Each connector owns the fetch+parse unit for one Source. Subclasses
implement:
    - origin: FetchOrigin for a normal (non-fallback) fetch
    - _fetch_endpoint(): fetch and parse a single endpoint

The base class handles:
    - Iterating the source's endpoints in order and aggregating items
    - Per-endpoint failure isolation (one bad endpoint is a warning)
    - The optional ``include_keywords`` item filter
    - Converting exceptions into an explicit FetchOutcome

``fetch()`` never raises IngestionError; callers branch on
``Ok`` / ``Empty`` / ``Err``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

from regwatch.config.settings import Settings, get_settings
from regwatch.ingestion.api_parser import get_schema, parse_api_payload
from regwatch.ingestion.errors import IngestionError, NoResultsError, ServerError
from regwatch.ingestion.html_scraper import scrape_listing
from regwatch.ingestion.http_client import FetchRequest, HTTPClient
from regwatch.ingestion.rss_parser import parse_feed
from regwatch.ingestion.schemas import (
    Empty,
    Err,
    FetchOrigin,
    FetchOutcome,
    Ok,
    RawItem,
)
from regwatch.sources.schemas import Source

logger = logging.getLogger(__name__)

# Statuses that switch an API source over to its RSS feed once retries
# are exhausted. 400 and 404 are never in this set.
DEFAULT_FALLBACK_STATUSES: frozenset[int] = frozenset({500, 502, 503, 504})

_FDA_RSS = "https://www.fda.gov/about-fda/contact-fda/stay-informed/rss-feeds"

# openFDA path -> RSS feed carrying the same notices
DEFAULT_RSS_FALLBACKS: dict[str, str] = {
    "/food/enforcement.json": f"{_FDA_RSS}/food-updates/rss.xml",
    "/drug/enforcement.json": f"{_FDA_RSS}/drug-updates/rss.xml",
    "/drug/event.json": f"{_FDA_RSS}/drug-updates/rss.xml",
    "/device/enforcement.json": f"{_FDA_RSS}/medical-device-updates/rss.xml",
}


@dataclass
class EndpointResult:
    """Items from one endpoint and where they came from."""

    items: list[RawItem]
    origin: FetchOrigin
    warnings: list[str] = field(default_factory=list)


def matches_include_keywords(item: RawItem, keywords: list[str]) -> bool:
    """True if any keyword appears in the item's title or description."""
    if not keywords:
        return True
    text = f"{item.title} {item.description}".lower()
    return any(k.lower() in text for k in keywords)


class Connector(ABC):
    """
    Abstract fetch+parse unit for one source.

    Args:
        source: Source being fetched
        client: Open HTTPClient (shared across connectors in a run)
        settings: Process settings, for API keys and default timeout
    """

    def __init__(
        self,
        source: Source,
        client: HTTPClient,
        settings: Settings | None = None,
    ) -> None:
        self.source = source
        self.client = client
        self.settings = settings or get_settings()

    @property
    @abstractmethod
    def origin(self) -> FetchOrigin:
        """Origin reported for items fetched without fallback."""
        ...

    @abstractmethod
    async def _fetch_endpoint(self, endpoint: str) -> EndpointResult:
        """
        Fetch and parse one endpoint.

        Raises:
            IngestionError: Any fetch or parse failure for this endpoint
        """
        ...

    @property
    def timeout(self) -> float:
        return self.source.timeout_seconds or self.settings.http_timeout_seconds

    async def fetch(self) -> FetchOutcome:
        """
        Fetch every endpoint of the source and aggregate the items.

        Returns:
            Ok if at least one endpoint produced items, Empty if every
            endpoint answered with nothing (or everything was filtered out),
            otherwise Err carrying the first failure.
        """
        if not self.source.endpoints:
            return Empty(f"Source {self.source.id} has no endpoints", self.origin)

        items: list[RawItem] = []
        warnings: list[str] = []
        errors: list[IngestionError] = []
        empty: list[NoResultsError] = []
        origin = self.origin

        for endpoint in self.source.endpoints:
            try:
                result = await self._fetch_endpoint(endpoint)
            except NoResultsError as e:
                e.endpoint = e.endpoint or endpoint
                logger.info("Endpoint %s of %s returned no items", endpoint, self.source.id)
                empty.append(e)
                continue
            except IngestionError as e:
                e.endpoint = e.endpoint or endpoint
                logger.warning(
                    "Endpoint %s of %s failed: %s: %s",
                    endpoint, self.source.id, e.error_type, e,
                )
                errors.append(e)
                warnings.append(f"{endpoint}: {e.error_type}: {e}")
                continue

            items.extend(result.items)
            warnings.extend(result.warnings)
            if result.origin != self.origin:
                origin = result.origin

        if items:
            include = self.source.metadata.get("include_keywords") or []
            kept = [i for i in items if matches_include_keywords(i, include)]
            if not kept:
                return Empty(
                    f"All {len(items)} items from {self.source.id} filtered out",
                    origin,
                )
            if len(kept) < len(items):
                logger.debug(
                    "Filtered %d of %d items from %s",
                    len(items) - len(kept), len(items), self.source.id,
                )
            return Ok(kept, origin, tuple(warnings), tuple(errors + empty))

        if errors:
            return Err(errors[0], FetchOrigin.NONE)
        return Empty("; ".join(str(e) for e in empty) or "no items", origin)


class RssConnector(Connector):
    """RSS/Atom feeds."""

    @property
    def origin(self) -> FetchOrigin:
        return FetchOrigin.RSS

    async def _fetch_endpoint(self, endpoint: str) -> EndpointResult:
        url = self.source.resolve_url(endpoint)
        response = await self.client.fetch(FetchRequest(url=url, timeout=self.timeout))
        return EndpointResult(parse_feed(response.content, url), FetchOrigin.RSS)


class ScraperConnector(Connector):
    """HTML listing pages."""

    @property
    def origin(self) -> FetchOrigin:
        return FetchOrigin.HTML

    async def _fetch_endpoint(self, endpoint: str) -> EndpointResult:
        url = self.source.resolve_url(endpoint)
        response = await self.client.fetch(FetchRequest(url=url, timeout=self.timeout))
        return EndpointResult(scrape_listing(response.text, url), FetchOrigin.HTML)


class ApiConnector(Connector):
    """
    JSON APIs validated against a per-source schema.

    Source metadata keys:
        api_schema: Schema name (see ``API_SCHEMAS``)
        results_key: Override for the schema's results field
        params: Static query parameters
        api_key_name: Settings attribute holding the API key
        api_key_param / api_key_header: Where to send the key
        date_field / lookback_days / limit: openFDA-style date search
        fallback_statuses: Statuses that trigger the RSS fallback
    """

    def __init__(
        self,
        source: Source,
        client: HTTPClient,
        settings: Settings | None = None,
        fallback_statuses: frozenset[int] = DEFAULT_FALLBACK_STATUSES,
    ) -> None:
        super().__init__(source, client, settings)
        configured = source.metadata.get("fallback_statuses")
        self.fallback_statuses = (
            frozenset(int(s) for s in configured) if configured else fallback_statuses
        )
        self.schema = get_schema(source.metadata.get("api_schema"))

    @property
    def origin(self) -> FetchOrigin:
        return FetchOrigin.API

    def build_request(self, url: str, now: datetime | None = None) -> FetchRequest:
        """Assemble params, API key and the simplified 400 retry query."""
        meta = self.source.metadata
        params: dict[str, Any] = dict(meta.get("params") or {})
        simplified: dict[str, Any] | None = None

        date_field = meta.get("date_field")
        if date_field:
            now = now or datetime.now(timezone.utc)
            lookback = int(meta.get("lookback_days", 14))
            start = (now - timedelta(days=lookback)).strftime("%Y%m%d")
            end = now.strftime("%Y%m%d")
            params["search"] = f"{date_field}:[{start} TO {end}]"
            params["limit"] = meta.get("limit", 50)

            # One retry with an open-ended, wider window
            wide_start = (now - timedelta(days=lookback * 4)).strftime("%Y%m%d")
            simplified = {k: v for k, v in params.items() if k != "sort"}
            simplified["search"] = f"{date_field}:[{wide_start} TO *]"

        return FetchRequest(
            url=url,
            params=params,
            timeout=self.timeout,
            api_key=self.settings.api_key_for(meta.get("api_key_name")),
            api_key_param=meta.get("api_key_param", "api_key"),
            api_key_header=meta.get("api_key_header"),
            simplified_params=simplified,
        )

    def fallback_url(self, endpoint: str) -> str | None:
        """RSS feed configured for an endpoint, if any."""
        url = self.source.resolve_url(endpoint)
        for key in (endpoint, url):
            if key in self.source.fallback_feeds:
                return self.source.fallback_feeds[key]
        parsed = urlparse(url)
        if parsed.netloc == "api.fda.gov":
            return DEFAULT_RSS_FALLBACKS.get(parsed.path)
        return None

    async def _fetch_endpoint(self, endpoint: str) -> EndpointResult:
        url = self.source.resolve_url(endpoint)
        try:
            response = await self.client.fetch(self.build_request(url))
        except ServerError as e:
            feed = self.fallback_url(endpoint)
            if feed is None or e.status_code not in self.fallback_statuses:
                raise
            logger.warning(
                "API %s failed with %s after %d attempts, falling back to RSS %s",
                url, e.status_code, e.attempts, feed,
            )
            return await self._fetch_fallback(feed, e)

        items = parse_api_payload(
            response.text,
            url,
            self.schema,
            results_key=self.source.metadata.get("results_key"),
        )
        return EndpointResult(items, FetchOrigin.API)

    async def _fetch_fallback(self, feed_url: str, cause: ServerError) -> EndpointResult:
        response = await self.client.fetch(
            FetchRequest(url=feed_url, timeout=self.timeout)
        )
        items = parse_feed(response.content, feed_url)
        for item in items:
            item.extra.setdefault("fallback_from", cause.endpoint)
        return EndpointResult(
            items,
            FetchOrigin.RSS,
            warnings=[f"{cause.endpoint}: served from RSS fallback ({cause.status_code})"],
        )


_CONNECTORS: dict[str, type[Connector]] = {
    "api": ApiConnector,
    "rss": RssConnector,
    "scraper": ScraperConnector,
}


def create_connector(
    source: Source,
    client: HTTPClient,
    settings: Settings | None = None,
) -> Connector:
    """Select the connector variant for ``source.type``."""
    try:
        connector_cls = _CONNECTORS[source.type]
    except KeyError:
        raise ValueError(f"No connector for source type {source.type!r}") from None
    return connector_cls(source, client, settings)
