"""RawItem + Source -> Alert draft."""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from regwatch.alerts.schemas import Alert
from regwatch.ingestion.schemas import FetchOrigin, RawItem
from regwatch.sources.schemas import Source

logger = logging.getLogger(__name__)

_COMPACT_DATE = re.compile(r"^\d{8}$")

# Formats seen on listing pages and in agency APIs
_DATE_FORMATS = (
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%m/%d/%Y %H:%M",
)


def parse_published_date(value: str | None, now: datetime | None = None) -> datetime:
    """
    Parse a payload date into an aware UTC datetime.

    Handles RFC 822 (RSS), ISO 8601 (Atom, JSON APIs), ``YYYYMMDD``
    (openFDA) and the common US listing formats. Falls back to ``now``
    when the value is missing or unparsable.
    """
    fallback = now or datetime.now(timezone.utc)
    if not value:
        return fallback
    text = value.strip()

    parsed: datetime | None = None
    if _COMPACT_DATE.match(text):
        try:
            parsed = datetime.strptime(text, "%Y%m%d")
        except ValueError:
            parsed = None
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
    if parsed is None:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            parsed = None
    if parsed is None:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        logger.debug("Unparsable date %r, using current time", value)
        return fallback
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def build_full_content(item: RawItem, origin: FetchOrigin) -> dict[str, Any]:
    """Snapshot of the raw item as persisted in ``alerts.full_content``."""
    content = item.to_dict()
    content["origin"] = origin.value
    return content


def normalize(
    item: RawItem,
    source: Source,
    origin: FetchOrigin = FetchOrigin.API,
    now: datetime | None = None,
) -> Alert:
    """
    Map a parsed item onto an Alert draft for ``source``.

    Urgency and signal type are left at their defaults for the classifier.

    Raises:
        ValueError: The item has an empty title
    """
    return Alert(
        title=item.title.strip(),
        source=source.name,
        agency=source.agency,
        region=source.region,
        published_date=parse_published_date(item.pub_date, now),
        external_url=item.link or None,
        full_content=build_full_content(item, origin),
        description=item.description or "",
        source_id=source.id,
    )
