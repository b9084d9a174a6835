"""Tests for the HTML listing scraper."""

import pytest
from bs4 import BeautifulSoup

from regwatch.ingestion.errors import NoResultsError, ParseError
from regwatch.ingestion.html_scraper import find_rows, scrape_listing

PAGE_URL = (
    "https://www.fda.gov/inspections-compliance-enforcement-and-criminal-investigations/"
    "compliance-actions-and-activities/warning-letters"
)

TABLE_PAGE = """
<html><body>
<table class="views-table">
  <thead><tr><th>Title</th><th>Issued</th><th>Company</th><th>Subject</th><th>Office</th></tr></thead>
  <tbody>
    <tr>
      <td><a href="/inspections/warning-letters/acme-labs-2026">Acme Labs Warning Letter</a></td>
      <td>03/05/2026</td>
      <td>Acme Labs Inc.</td>
      <td>CGMP/Finished Pharmaceuticals/Adulterated</td>
      <td>Center for Drug Evaluation and Research</td>
    </tr>
    <tr>
      <td>No link in this row</td>
      <td>03/04/2026</td>
    </tr>
    <tr>
      <td><a href="https://www.fda.gov/wl/beta">Beta Foods Warning Letter</a></td>
      <td>03/03/2026</td>
      <td></td>
      <td>Food Safety</td>
      <td></td>
    </tr>
  </tbody>
</table>
</body></html>
"""

VIEWS_PAGE = """
<html><body>
<div class="views-row">
  <h3><a href="/wl/gamma">Gamma Devices Warning Letter</a></h3>
  <div class="views-field-field-issued-date">February 20, 2026</div>
  <div class="views-field-field-warning-letter-company">Gamma Devices LLC</div>
</div>
</body></html>
"""


class TestFindRows:
    def test_table_strategy_first(self):
        name, rows = find_rows(BeautifulSoup(TABLE_PAGE, "html.parser"))
        assert name == "table"
        assert len(rows) == 3

    def test_views_strategy(self):
        name, rows = find_rows(BeautifulSoup(VIEWS_PAGE, "html.parser"))
        assert name == "views"
        assert len(rows) == 1

    def test_nothing_found(self):
        name, rows = find_rows(BeautifulSoup("<p>hello</p>", "html.parser"))
        assert name == "none"
        assert rows == []


class TestScrapeListing:
    """Tests for scrape_listing."""

    def test_table_rows(self):
        items = scrape_listing(TABLE_PAGE, PAGE_URL)

        assert [i.title for i in items] == [
            "Acme Labs Warning Letter",
            "Beta Foods Warning Letter",
        ]

    def test_relative_link_made_absolute(self):
        item = scrape_listing(TABLE_PAGE, PAGE_URL)[0]
        assert item.link == "https://www.fda.gov/inspections/warning-letters/acme-labs-2026"

    def test_path_relative_link_resolved_against_page(self):
        page = TABLE_PAGE.replace(
            "/inspections/warning-letters/acme-labs-2026", "acme-labs-2026"
        )
        item = scrape_listing(page, PAGE_URL + "/")[0]
        assert item.link == PAGE_URL + "/acme-labs-2026"

    def test_absolute_link_kept(self):
        item = scrape_listing(TABLE_PAGE, PAGE_URL)[1]
        assert item.link == "https://www.fda.gov/wl/beta"

    def test_row_fields(self):
        item = scrape_listing(TABLE_PAGE, PAGE_URL)[0]

        assert item.pub_date == "03/05/2026"
        assert item.description == (
            "Company: Acme Labs Inc.. "
            "Subject: CGMP/Finished Pharmaceuticals/Adulterated. "
            "Issuing office: Center for Drug Evaluation and Research"
        )
        assert item.extra["company"] == "Acme Labs Inc."
        assert item.source_ref == PAGE_URL

    def test_missing_company_defaults(self):
        item = scrape_listing(TABLE_PAGE, PAGE_URL)[1]
        assert item.extra["company"] == "Unknown Company"
        assert item.description == "Subject: Food Safety"

    def test_views_fallback_selectors(self):
        item = scrape_listing(VIEWS_PAGE, PAGE_URL)[0]

        assert item.title == "Gamma Devices Warning Letter"
        assert item.link == "https://www.fda.gov/wl/gamma"
        assert item.pub_date == "February 20, 2026"
        assert item.extra["company"] == "Gamma Devices LLC"

    def test_no_rows_is_parse_error(self):
        with pytest.raises(ParseError) as exc_info:
            scrape_listing("<html><body><p>Redesigned page</p></body></html>", PAGE_URL)
        assert exc_info.value.parser == "html"

    def test_rows_without_links_is_no_results(self):
        body = "<table><tbody><tr><td>Nothing here</td></tr></tbody></table>"
        with pytest.raises(NoResultsError):
            scrape_listing(body, PAGE_URL)
