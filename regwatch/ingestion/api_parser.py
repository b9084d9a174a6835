"""JSON API payload parsing with per-source schemas.

Every government API has its own record shape. Each shape is declared as
a pydantic model so malformed payloads fail at this boundary as a typed
``ParseError`` instead of leaking ``None`` into the classifier.

Outcomes:
- body is not JSON, or the results field is not a list -> ParseError
- results field missing or empty                      -> NoResultsError
- some records invalid                                -> skipped, logged
- every record invalid                                -> ParseError
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from regwatch.ingestion.errors import NoResultsError, ParseError
from regwatch.ingestion.schemas import RawItem

logger = logging.getLogger(__name__)


# ── Record models ───────────────────────────────────────────


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class OpenFDAEnforcementRecord(_Record):
    """One row of ``/{food,drug,device}/enforcement.json``."""

    product_description: str = Field(min_length=1)
    classification: str | None = None
    reason_for_recall: str | None = None
    status: str | None = None
    recall_number: str | None = None
    recalling_firm: str | None = None
    report_date: str | None = None
    recall_initiation_date: str | None = None


class FederalRegisterArticle(_Record):
    """One row of the Federal Register ``articles.json`` results."""

    title: str = Field(min_length=1)
    html_url: str | None = None
    abstract: str | None = None
    publication_date: str | None = None
    type: str | None = None
    document_number: str | None = None
    agencies: list[dict[str, Any]] = Field(default_factory=list)


class EpaEchoCase(_Record):
    """One EPA ECHO enforcement case."""

    defendant_entity: str | None = Field(default=None, alias="DefendantEntity")
    facility_name: str | None = Field(default=None, alias="FacilityName")
    penalty: str | None = Field(default=None, alias="FedPenaltyAssessed")
    violation_types: str | None = Field(default=None, alias="ViolationTypes")
    settlement_date: str | None = Field(default=None, alias="SettlementDate")
    filed_date: str | None = Field(default=None, alias="FiledDate")
    case_number: str | None = Field(default=None, alias="CaseNumber")


class GenericRecord(_Record):
    """Fallback shape for APIs exposing title/link/description style keys."""

    title: str = Field(min_length=1)
    link: str | None = Field(default=None, alias="url")
    description: str | None = Field(default=None, alias="summary")
    pub_date: str | None = Field(default=None, alias="date")


# ── Record -> RawItem mappers ───────────────────────────────


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


def _map_openfda(record: OpenFDAEnforcementRecord, ref: str) -> RawItem:
    product = _truncate(record.product_description.strip(), 200)
    title = f"{product} Recall - {record.classification or 'Unclassified'}"
    parts = [
        record.reason_for_recall or "",
        f"Status: {record.status}" if record.status else "",
        f"Recall number: {record.recall_number}" if record.recall_number else "",
        f"Firm: {record.recalling_firm}" if record.recalling_firm else "",
    ]
    return RawItem(
        title=title,
        link="https://www.fda.gov/safety/recalls-market-withdrawals-safety-alerts",
        description=". ".join(p for p in parts if p),
        pub_date=record.report_date or record.recall_initiation_date,
        source_ref=ref,
        guid=record.recall_number,
        extra=record.model_dump(),
    )


def _map_federal_register(record: FederalRegisterArticle, ref: str) -> RawItem:
    agency_name = ""
    if record.agencies:
        agency_name = record.agencies[0].get("name") or ""
    title = f"{agency_name}: {record.title}" if agency_name else record.title
    return RawItem(
        title=title,
        link=record.html_url or "",
        description=record.abstract or "New regulatory document published.",
        pub_date=record.publication_date,
        source_ref=ref,
        guid=record.document_number,
        extra={"document_type": record.type, "agency_full_name": agency_name},
    )


def _map_epa_echo(record: EpaEchoCase, ref: str) -> RawItem:
    entity = record.defendant_entity or record.facility_name or "Environmental Violation"
    description = f"EPA enforcement action. Penalty: ${record.penalty or '0'}."
    if record.violation_types:
        description = f"{description} {record.violation_types}"
    return RawItem(
        title=f"EPA Enforcement: {entity}",
        link="https://echo.epa.gov/",
        description=description,
        pub_date=record.settlement_date or record.filed_date,
        source_ref=ref,
        guid=record.case_number,
        extra=record.model_dump(by_alias=True),
    )


def _map_generic(record: GenericRecord, ref: str) -> RawItem:
    return RawItem(
        title=record.title.strip(),
        link=record.link or "",
        description=record.description or "",
        pub_date=record.pub_date,
        source_ref=ref,
    )


@dataclass(frozen=True)
class ApiSchema:
    """Binds a record model to its results key and RawItem mapper."""

    name: str
    model: type[BaseModel]
    mapper: Callable[[Any, str], RawItem]
    results_key: str = "results"


API_SCHEMAS: dict[str, ApiSchema] = {
    "openfda_enforcement": ApiSchema(
        "openfda_enforcement", OpenFDAEnforcementRecord, _map_openfda
    ),
    "federal_register": ApiSchema(
        "federal_register", FederalRegisterArticle, _map_federal_register
    ),
    "epa_echo": ApiSchema(
        "epa_echo", EpaEchoCase, _map_epa_echo, results_key="Results"
    ),
    "generic": ApiSchema("generic", GenericRecord, _map_generic),
}


def get_schema(name: str | None) -> ApiSchema:
    """Look up a schema by name, defaulting to ``generic``."""
    if name is None:
        return API_SCHEMAS["generic"]
    try:
        return API_SCHEMAS[name]
    except KeyError:
        raise ValueError(
            f"Unknown api_schema {name!r}. Must be one of: {sorted(API_SCHEMAS)}"
        ) from None


def _extract_results(payload: Any, key: str) -> Any:
    """Find the results array, descending one level for wrapped payloads."""
    if not isinstance(payload, dict):
        return payload if isinstance(payload, list) else None
    value = payload.get(key)
    # EPA ECHO nests: {"Results": {"Results": [...]}}
    if isinstance(value, dict) and key in value:
        value = value[key]
    return value


def parse_api_payload(
    body: str | bytes,
    endpoint: str,
    schema: ApiSchema,
    results_key: str | None = None,
) -> list[RawItem]:
    """
    Parse a JSON API response body into RawItems.

    Args:
        body: Raw response body
        endpoint: URL the body came from (for error context)
        schema: Record schema for this source
        results_key: Override for the schema's results key

    Returns:
        Non-empty list of RawItems

    Raises:
        ParseError: Body or results field malformed
        NoResultsError: Results field missing or empty
    """
    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as e:
        raise ParseError(
            f"Response from {endpoint} is not valid JSON",
            feed_url=endpoint,
            cause=e,
            parser="api",
        ) from e

    key = results_key or schema.results_key
    results = _extract_results(payload, key)

    if results is None or results == []:
        raise NoResultsError(
            f"No '{key}' returned from {endpoint}",
            endpoint=endpoint,
        )
    if not isinstance(results, list):
        raise ParseError(
            f"Field '{key}' from {endpoint} is {type(results).__name__}, expected list",
            feed_url=endpoint,
            parser="api",
        )

    items: list[RawItem] = []
    invalid = 0
    for index, raw in enumerate(results):
        try:
            record = schema.model.model_validate(raw)
        except ValidationError as e:
            invalid += 1
            logger.warning(
                "Skipping invalid %s record %d from %s: %s",
                schema.name, index, endpoint, e.errors()[0].get("msg", e),
            )
            continue
        items.append(schema.mapper(record, endpoint))

    if not items:
        raise ParseError(
            f"All {invalid} records from {endpoint} failed {schema.name} validation",
            feed_url=endpoint,
            parser="api",
        )

    if invalid:
        logger.info(
            "Parsed %d %s records from %s (%d skipped)",
            len(items), schema.name, endpoint, invalid,
        )
    return items
