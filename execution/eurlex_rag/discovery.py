"""
Metadata Discovery over the EU Publications Office SPARQL endpoints

Finds recent Regulations and Directives (CELEX sector 3, types R/L), prefers
Romanian titles, and paginates with LIMIT/OFFSET.

Each page is resolved by trying an ordered list of query shapes
(ELI first, then CDM). Each shape is tried against an ordered list of
endpoints, and each endpoint call tries POST before GET with an explicit
result format. The first non-empty result wins.
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union
from urllib.parse import urlencode

import requests

from .exceptions import DiscoveryError
from .http_utils import RetryPolicy, make_session, request_with_retry
from .language_config import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from .language_patterns import CELEX_YEAR_REGEX

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINTS = [
    "https://op.europa.eu/webapi/rdf/sparql",
    "https://publications.europa.eu/webapi/rdf/sparql",
]

SPARQL_JSON = "application/sparql-results+json"
SPARQL_ACCEPT = f"{SPARQL_JSON}, application/json;q=0.9, */*;q=0.1"

EURLEX_TXT_URL = "https://eur-lex.europa.eu/legal-content/{code}/TXT/?uri=CELEX:{celex}"


def eurlex_url(celex: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Canonical EUR-Lex HTML text URL for a CELEX id in the given language."""
    info = SUPPORTED_LANGUAGES.get(language, SUPPORTED_LANGUAGES[DEFAULT_LANGUAGE])
    return EURLEX_TXT_URL.format(code=info["eurlex_code"], celex=celex)


@dataclass(frozen=True)
class DiscoveryRecord:
    """A candidate legal act found by discovery."""
    document_id: str  # CELEX number
    title: str
    language: str
    source_url: str
    issued: Optional[str] = None
    work: str = ""
    expression: str = ""

    @classmethod
    def manual(cls, celex: str, language: str = DEFAULT_LANGUAGE) -> "DiscoveryRecord":
        """Record for a CELEX id supplied by the operator instead of discovery."""
        return cls(
            document_id=celex,
            title=celex,
            language=language,
            source_url=eurlex_url(celex, language),
        )

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "title": self.title,
            "language": self.language,
            "source_url": self.source_url,
            "issued": self.issued,
            "work": self.work,
            "expression": self.expression,
        }


# =============================================================================
# Query shapes
# =============================================================================

def build_eli_query(limit: int, offset: int, since_year: Optional[int] = None) -> str:
    """ELI query grouped by CELEX; filters by the year embedded in the CELEX id."""
    year_filter = (
        f"FILTER(xsd:integer(SUBSTR(STR(?celex), 2, 4)) >= {since_year})"
        if since_year else ""
    )
    return f"""
PREFIX eli: <http://data.europa.eu/eli/ontology#>
PREFIX dct: <http://purl.org/dc/terms/>
PREFIX xsd: <http://www.w3.org/2001/XMLSchema#>
SELECT ?celex (SAMPLE(?work) AS ?work) (SAMPLE(?expression) AS ?expression)
       (SAMPLE(?title) AS ?title) (SAMPLE(?lang) AS ?lang) (MAX(?issued) AS ?issued)
FROM <http://publications.europa.eu/resource/dataset/cellar>
WHERE {{
  ?work eli:celex ?celex .
  FILTER(REGEX(STR(?celex), '^3[0-9]{{4}}[RL]'))
  {year_filter}
  OPTIONAL {{
    ?work eli:is_realized_by ?expression .
    OPTIONAL {{ ?expression dct:issued ?issued }}
    OPTIONAL {{ ?expression eli:title ?title }}
    OPTIONAL {{ ?expression dct:language ?lang }}
  }}
}}
GROUP BY ?celex
ORDER BY DESC(?issued)
LIMIT {limit} OFFSET {offset}
""".strip()


def build_cdm_query(limit: int, offset: int, since_year: Optional[int] = None) -> str:
    """CDM query over expression/work classes; filters on the modification date."""
    since_filter = (
        f'FILTER(BOUND(?issued) && ?issued >= "{since_year}-01-01T00:00:00"^^xsd:dateTime)'
        if since_year else ""
    )
    return f"""
PREFIX cdm: <http://publications.europa.eu/ontology/cdm#>
PREFIX cmr: <http://publications.europa.eu/ontology/cdm/cmr#>
PREFIX xsd: <http://www.w3.org/2001/XMLSchema#>
PREFIX owl: <http://www.w3.org/2002/07/owl#>
SELECT ?celex ?work ?expression ?title ?lang ?issued WHERE {{
  ?expression a cdm:expression ;
              cdm:expression_belongs_to_work ?work ;
              cdm:expression_title ?title .
  OPTIONAL {{ ?expression cmr:lang ?langLiteral }}
  OPTIONAL {{ ?expression cdm:expression_uses_language ?langRes }}
  OPTIONAL {{ ?expression cmr:lastModificationDate ?issued }}
  ?work owl:sameAs ?same .
  FILTER(CONTAINS(STR(?same), "/resource/celex/"))
  BIND(REPLACE(STR(?same), ".*/resource/celex/([^.]+).*$", "$1") AS ?celex)
  BIND(
    IF(BOUND(?langLiteral) && (STR(?langLiteral) = 'ro' || STR(?langLiteral) = 'ron' || STR(?langLiteral) = 'rum'), 'ro',
      IF(BOUND(?langLiteral) && (STR(?langLiteral) = 'en' || STR(?langLiteral) = 'eng'), 'en',
        IF(BOUND(?langRes) && CONTAINS(STR(?langRes), '/ROU'), 'ro',
          IF(BOUND(?langRes) && CONTAINS(STR(?langRes), '/ENG'), 'en', UNDEF)
        )
      )
    )
  AS ?lang)
  FILTER(BOUND(?lang))
  FILTER(REGEX(?celex, '^3[0-9]{{4}}[RL]'))
  {since_filter}
}}
LIMIT {limit} OFFSET {offset}
""".strip()


@dataclass(frozen=True)
class QueryStrategy:
    """A named SPARQL query shape."""
    name: str
    build: Callable[[int, int, Optional[int]], str]


DEFAULT_STRATEGIES = (
    QueryStrategy("ELI", build_eli_query),
    QueryStrategy("CDM", build_cdm_query),
)


# =============================================================================
# SPARQL transport
# =============================================================================

@dataclass
class SparqlFailure:
    """Typed failure of one endpoint call or one whole strategy."""
    endpoint: str
    message: str


def _is_json_response(response: requests.Response) -> bool:
    content_type = (response.headers.get("content-type") or "").lower()
    return response.ok and (SPARQL_JSON in content_type or "application/json" in content_type)


class SparqlClient:
    """Runs a SPARQL query against a single endpoint, POST first, then GET."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        policy: Optional[RetryPolicy] = None,
    ):
        self.session = session or make_session(accept=SPARQL_ACCEPT)
        timeout = float(os.getenv("SPARQL_TIMEOUT_SECONDS", "60"))
        self.policy = policy or RetryPolicy(attempts=3, base_delay=0.7, timeout=timeout)

    def run(self, endpoint: str, query: str) -> Union[dict, SparqlFailure]:
        """
        Run one query against one endpoint.

        Returns:
            The decoded SPARQL JSON result, or a SparqlFailure
        """
        try:
            response = request_with_retry(
                self.session,
                "POST",
                endpoint,
                policy=self.policy,
                data=query.encode("utf-8"),
                headers={
                    "Accept": SPARQL_ACCEPT,
                    "Content-Type": "application/sparql-query",
                },
            )
            if _is_json_response(response):
                return response.json()

            # Virtuoso accepts an explicit format parameter on GET
            url = f"{endpoint}?{urlencode({'query': query, 'format': SPARQL_JSON})}"
            response = request_with_retry(
                self.session,
                "GET",
                url,
                policy=self.policy,
                headers={"Accept": SPARQL_ACCEPT},
            )
            if _is_json_response(response):
                return response.json()

            content_type = response.headers.get("content-type", "")
            preview = (response.text or "")[:200]
            return SparqlFailure(
                endpoint,
                f"HTTP {response.status_code} content-type={content_type} preview={preview}",
            )
        except (requests.RequestException, ValueError) as e:
            return SparqlFailure(endpoint, str(e))


# =============================================================================
# Discovery
# =============================================================================

class MetadataDiscovery:
    """
    Discovers candidate legal acts page by page.

    Usage:
        discovery = MetadataDiscovery()
        records = discovery.discover(page_size=10, page_count=2, since_year=2019)
    """

    def __init__(
        self,
        client: Optional[SparqlClient] = None,
        endpoints: Optional[list[str]] = None,
        strategies: Optional[tuple] = None,
        preferred_language: str = DEFAULT_LANGUAGE,
    ):
        self.client = client or SparqlClient()
        if endpoints is None:
            endpoints = list(DEFAULT_ENDPOINTS)
            override = os.getenv("SPARQL_ENDPOINT")
            if override:
                endpoints = [override] + [e for e in endpoints if e != override]
        self.endpoints = endpoints
        self.strategies = strategies or DEFAULT_STRATEGIES
        self.preferred_language = preferred_language

    def discover(
        self,
        page_size: int = 10,
        page_count: int = 1,
        since_year: Optional[int] = None,
    ) -> list[DiscoveryRecord]:
        """
        Query the metadata endpoints for candidate documents.

        Args:
            page_size: Rows per page (LIMIT)
            page_count: Maximum number of pages
            since_year: Optional minimum year

        Returns:
            Records deduplicated by CELEX, in discovery order

        Raises:
            DiscoveryError: if the first page cannot be fetched from any endpoint
        """
        records: list[DiscoveryRecord] = []

        for page in range(page_count):
            offset = page * page_size
            logger.info(
                f"[Discovery] Querying SPARQL page {page + 1}/{page_count}, "
                f"limit {page_size}, offset {offset}"
            )
            try:
                bindings = self._fetch_page(page_size, offset, since_year)
            except DiscoveryError as e:
                if page == 0:
                    raise
                logger.warning(f"[Discovery] Page {page + 1} failed, stopping pagination: {e}")
                break

            for binding in bindings:
                record = self.parse_binding(binding, since_year)
                if record is not None:
                    records.append(record)

            if not bindings:
                break

        return self.deduplicate(records, self.preferred_language)

    def _fetch_page(self, limit: int, offset: int, since_year: Optional[int]) -> list[dict]:
        """Fold over strategies x endpoints; return the first non-empty bindings."""
        last_failure: Optional[SparqlFailure] = None
        any_success = False

        for strategy in self.strategies:
            query = strategy.build(limit, offset, since_year)
            outcome = self._run_on_endpoints(query)
            if isinstance(outcome, SparqlFailure):
                logger.warning(
                    f"[Discovery] {strategy.name} failed on all endpoints: {outcome.message}"
                )
                last_failure = outcome
                continue

            any_success = True
            bindings = (outcome.get("results") or {}).get("bindings") or []
            if bindings:
                return bindings
            logger.warning(f"[Discovery] {strategy.name} returned 0 items; trying next query shape.")

        if any_success:
            return []
        page = offset // limit if limit else 0
        message = last_failure.message if last_failure else "no endpoints configured"
        raise DiscoveryError(f"All SPARQL endpoints failed: {message}", page=page)

    def _run_on_endpoints(self, query: str) -> Union[dict, SparqlFailure]:
        last_failure = SparqlFailure("", "no endpoints configured")
        for endpoint in self.endpoints:
            outcome = self.client.run(endpoint, query)
            if not isinstance(outcome, SparqlFailure):
                return outcome
            logger.warning(f"[Discovery] Endpoint {endpoint} failed: {outcome.message}")
            last_failure = outcome
        return last_failure

    @staticmethod
    def parse_binding(binding: dict, since_year: Optional[int] = None) -> Optional[DiscoveryRecord]:
        """
        Convert one SPARQL result row into a DiscoveryRecord.

        Returns None for rows lacking a CELEX id or title, or older than since_year.
        """
        def value(name: str) -> Optional[str]:
            cell = binding.get(name)
            return cell.get("value") if cell else None

        celex = value("celex")
        title = value("title")
        if not celex or not title:
            return None

        issued = value("issued")
        if since_year:
            year = _year_of(issued) if issued else None
            if year is None:
                year = _year_from_celex(celex)
            if year is not None and year < since_year:
                return None

        lang_value = (value("lang") or "").strip()
        language = "ro" if "/ROU" in lang_value.upper() or lang_value.lower() == "ro" else "en"

        return DiscoveryRecord(
            document_id=celex,
            title=title,
            language=language,
            source_url=eurlex_url(celex, language),
            issued=issued,
            work=value("work") or "",
            expression=value("expression") or "",
        )

    @staticmethod
    def deduplicate(records: list[DiscoveryRecord], preferred_language: str) -> list[DiscoveryRecord]:
        """Collapse records by CELEX, keeping the preferred-language variant."""
        by_celex: dict[str, DiscoveryRecord] = {}
        for record in records:
            previous = by_celex.get(record.document_id)
            if previous is None:
                by_celex[record.document_id] = record
            elif previous.language != preferred_language and record.language == preferred_language:
                by_celex[record.document_id] = record
        return list(by_celex.values())


def _year_of(issued: str) -> Optional[int]:
    try:
        return int(issued[:4])
    except (TypeError, ValueError):
        return None


def _year_from_celex(celex: str) -> Optional[int]:
    match = CELEX_YEAR_REGEX.match(celex)
    return int(match.group(1)) if match else None
