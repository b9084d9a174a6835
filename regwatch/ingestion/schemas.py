"""Transient ingestion types: parsed items and connector outcomes.

``RawItem`` is what every parser emits and the normalizer consumes; it is
never persisted. ``FetchOutcome`` lets callers tell "nothing new" apart
from "the source broke" without catching exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from regwatch.ingestion.errors import IngestionError


class FetchOrigin(str, Enum):
    """Where a connector's items ultimately came from."""

    API = "API"
    RSS = "RSS"
    HTML = "HTML"
    NONE = "NONE"


@dataclass
class RawItem:
    """A single notice extracted from a payload.

    Attributes:
        title: Headline, tag-stripped.
        link: Absolute URL to the notice (may be empty).
        description: Plain-text body or abstract.
        pub_date: Publication date as found in the payload (unparsed).
        source_ref: URL of the feed/endpoint/page the item came from.
        guid: Feed-level identifier, if any.
        extra: Source-specific fields kept for ``full_content``.
    """

    title: str
    link: str = ""
    description: str = ""
    pub_date: str | None = None
    source_ref: str = ""
    guid: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "title": self.title,
            "link": self.link,
            "description": self.description,
            "pubDate": self.pub_date,
            "source_ref": self.source_ref,
            "guid": self.guid,
            **({"extra": self.extra} if self.extra else {}),
        }


@dataclass(frozen=True)
class Ok:
    """Items were fetched and parsed.

    ``errors`` holds failures of individual endpoints that did not stop
    the source from producing items; they still need reporting.
    """

    items: list[RawItem]
    origin: FetchOrigin = FetchOrigin.API
    warnings: tuple[str, ...] = ()
    errors: tuple[IngestionError, ...] = ()


@dataclass(frozen=True)
class Empty:
    """The call succeeded but yielded zero items."""

    reason: str
    origin: FetchOrigin = FetchOrigin.API


@dataclass(frozen=True)
class Err:
    """The source could not be fetched or parsed this run."""

    error: IngestionError
    origin: FetchOrigin = FetchOrigin.NONE


FetchOutcome = Union[Ok, Empty, Err]
