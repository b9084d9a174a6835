"""RSS / Atom feed parsing.

Uses feedparser for RSS 0.9x/2.0, RSS 1.0 and Atom (CDATA sections and
entity-encoded markup are decoded there), then strips any remaining
HTML with BeautifulSoup.
"""

import html
import logging
import re
from typing import Any

import feedparser
from bs4 import BeautifulSoup

from regwatch.ingestion.errors import NoResultsError, ParseError
from regwatch.ingestion.schemas import RawItem

logger = logging.getLogger(__name__)

# Titles this short are navigation links or placeholders, not notices
MIN_TITLE_LENGTH = 10

_WHITESPACE = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def strip_html(text: str | None) -> str:
    """
    Reduce an HTML fragment to clean, single-spaced text.

    Args:
        text: Raw HTML or plain text

    Returns:
        Plain text with entities decoded and whitespace collapsed
    """
    if not text:
        return ""
    if "<" in text:
        soup = BeautifulSoup(text, "html.parser")
        for element in soup(["script", "style"]):
            element.decompose()
        text = soup.get_text(separator=" ")
    text = html.unescape(text)
    text = _CONTROL_CHARS.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def _entry_description(entry: Any) -> str:
    for key in ("summary", "description"):
        if entry.get(key):
            return entry[key]
    content = entry.get("content") or []
    if content:
        return content[0].get("value", "")
    return ""


def _entry_link(entry: Any) -> str:
    link = entry.get("link") or ""
    if link:
        return link.strip()
    for candidate in entry.get("links", []):
        if candidate.get("href"):
            return candidate["href"].strip()
    guid = entry.get("id") or ""
    return guid.strip() if guid.startswith(("http://", "https://")) else ""


def _entry_date(entry: Any) -> str | None:
    for key in ("published", "updated", "created"):
        if entry.get(key):
            return entry[key].strip()
    return None


def parse_feed(
    body: str | bytes,
    feed_url: str,
    min_title_length: int = MIN_TITLE_LENGTH,
) -> list[RawItem]:
    """
    Parse an RSS or Atom document into RawItems, in feed order.

    Args:
        body: Raw feed document
        feed_url: URL the feed was fetched from
        min_title_length: Items whose title is not longer than this are dropped

    Returns:
        Non-empty list of RawItems

    Raises:
        ParseError: The document is not a readable feed
        NoResultsError: The feed is readable but yields no usable items
    """
    try:
        feed = feedparser.parse(body)
    except Exception as e:
        raise ParseError(
            f"Feed parser crashed on {feed_url}: {e}",
            feed_url=feed_url,
            cause=e,
            parser="rss",
        ) from e

    entries = feed.get("entries", [])
    if not entries:
        if feed.get("bozo"):
            cause = feed.get("bozo_exception")
            raise ParseError(
                f"Malformed feed at {feed_url}: {cause}",
                feed_url=feed_url,
                cause=cause,
                parser="rss",
            )
        raise NoResultsError(f"Feed {feed_url} has no entries", endpoint=feed_url)

    items: list[RawItem] = []
    for entry in entries:
        title = strip_html(entry.get("title"))
        if len(title) <= min_title_length:
            continue

        guid = entry.get("id") or None
        link = _entry_link(entry)
        description = strip_html(_entry_description(entry)) or title

        items.append(
            RawItem(
                title=title,
                link=link,
                description=description,
                pub_date=_entry_date(entry),
                source_ref=feed_url,
                guid=guid,
            )
        )

    if not items:
        raise NoResultsError(
            f"Feed {feed_url} yielded 0 usable items from {len(entries)} entries",
            endpoint=feed_url,
        )

    logger.debug("Parsed %d items from %s", len(items), feed_url)
    return items
