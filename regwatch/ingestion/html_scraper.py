"""HTML listing scraper for pages without a feed or API.

Built around Drupal "views" listings such as the FDA warning-letter
index. Row selection walks an ordered list of strategies (table rows,
then view rows, then list items) and stops at the first one that finds
any candidate. Each row is parsed independently; a row missing its
title or link is skipped without failing the page.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from regwatch.ingestion.errors import NoResultsError, ParseError
from regwatch.ingestion.rss_parser import strip_html
from regwatch.ingestion.schemas import RawItem

logger = logging.getLogger(__name__)

ROW_STRATEGIES: tuple[tuple[str, str], ...] = (
    ("table", "table.views-table tbody tr, table tbody tr"),
    ("views", "div.views-row, article.node--type-warning-letter"),
    ("list", "li.views-row, div.item-list li"),
)


@dataclass(frozen=True)
class FieldSelectors:
    """Primary (table cell) and fallback (views field) selectors for one field."""

    primary: str
    fallback: str


TITLE = FieldSelectors(
    "td:first-child a, td a",
    ".views-field-title a, .field--name-title a, h3 a, h4 a, h2 a, a",
)
DATE = FieldSelectors(
    "td:nth-child(2), time",
    ".views-field-field-issued-date, .field--name-field-issued-date, .date, time",
)
COMPANY = FieldSelectors(
    "td:nth-child(3)",
    ".views-field-field-warning-letter-company, "
    ".field--name-field-warning-letter-company, .company",
)
SUBJECT = FieldSelectors(
    "td:nth-child(4)",
    ".views-field-field-warning-letter-subject, "
    ".field--name-field-warning-letter-subject, .subject",
)
OFFICE = FieldSelectors(
    "td:nth-child(5)",
    ".views-field-field-issuing-office, .field--name-field-issuing-office, .office",
)


def _select(row: Tag, selectors: FieldSelectors, use_fallback: bool) -> Tag | None:
    return row.select_one(selectors.fallback if use_fallback else selectors.primary)


def _text(element: Tag | None) -> str:
    return strip_html(element.get_text(" ")) if element is not None else ""


def find_rows(soup: BeautifulSoup) -> tuple[str, list[Tag]]:
    """Return the first strategy name and rows that yield any candidates."""
    for name, selector in ROW_STRATEGIES:
        rows = soup.select(selector)
        if rows:
            return name, rows
    return "none", []


def _parse_row(row: Tag, page_url: str) -> RawItem | None:
    title_el = row.select_one(TITLE.primary)
    use_fallback = title_el is None
    if use_fallback:
        title_el = row.select_one(TITLE.fallback)
    if title_el is None:
        return None

    title = _text(title_el)
    href = (title_el.get("href") or "").strip()
    if not title or not href:
        return None

    issued = _text(_select(row, DATE, use_fallback))
    company = _text(_select(row, COMPANY, use_fallback))
    subject = _text(_select(row, SUBJECT, use_fallback))
    office = _text(_select(row, OFFICE, use_fallback))

    link = urljoin(page_url, href)
    description_parts = [
        f"Company: {company}" if company else "",
        f"Subject: {subject}" if subject else "",
        f"Issuing office: {office}" if office else "",
    ]

    return RawItem(
        title=title,
        link=link,
        description=". ".join(p for p in description_parts if p) or title,
        pub_date=issued or None,
        source_ref=page_url,
        extra={
            "company": company or "Unknown Company",
            "subject": subject,
            "issuing_office": office,
        },
    )


def scrape_listing(body: str | bytes, page_url: str) -> list[RawItem]:
    """
    Extract listing rows from an HTML page, in document order.

    Args:
        body: Raw HTML
        page_url: URL of the page (used to absolutize relative links)

    Returns:
        Non-empty list of RawItems

    Raises:
        ParseError: No row strategy matched (page structure changed)
        NoResultsError: Rows matched but none had a title and link
    """
    try:
        soup = BeautifulSoup(body, "html.parser")
    except Exception as e:
        raise ParseError(
            f"Could not parse HTML from {page_url}: {e}",
            feed_url=page_url,
            cause=e,
            parser="html",
        ) from e

    strategy, rows = find_rows(soup)
    if not rows:
        raise ParseError(
            f"No listing rows found at {page_url} with any selector strategy",
            feed_url=page_url,
            parser="html",
        )

    items: list[RawItem] = []
    skipped = 0
    for row in rows:
        try:
            item = _parse_row(row, page_url)
        except Exception as e:
            logger.warning("Error parsing listing row at %s: %s", page_url, e)
            item = None
        if item is None:
            skipped += 1
            continue
        items.append(item)

    logger.debug(
        "Scraped %d rows from %s using %s strategy (%d skipped)",
        len(items), page_url, strategy, skipped,
    )

    if not items:
        raise NoResultsError(
            f"{len(rows)} rows at {page_url} had no usable title/link",
            endpoint=page_url,
        )
    return items
