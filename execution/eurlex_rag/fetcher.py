"""
Document Fetcher

Downloads the HTML text of a legal act from EUR-Lex with bounded retries,
falls back from the Romanian to the English language variant once, and
scans the markup for "no longer in force" status markers.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from .discovery import DiscoveryRecord
from .exceptions import FetchError
from .http_utils import RetryPolicy, make_session, request_with_retry
from .language_config import SUPPORTED_LANGUAGES
from .language_patterns import END_OF_VALIDITY_REGEX, NO_LONGER_IN_FORCE_MARKERS

logger = logging.getLogger(__name__)

FETCH_POLICY = RetryPolicy(attempts=5, base_delay=0.8, jitter=0.2, timeout=25.0)


@dataclass(frozen=True)
class ValidityStatus:
    """Result of scanning markup for status markers."""
    no_longer_in_force: bool
    end_of_validity: Optional[str] = None


def check_validity(markup: str) -> ValidityStatus:
    """
    Scan raw markup for "no longer in force" markers (English and Romanian).

    Returns:
        ValidityStatus; end_of_validity is the dd/mm/yyyy date when the page states one
    """
    if not any(marker.search(markup) for marker in NO_LONGER_IN_FORCE_MARKERS):
        return ValidityStatus(no_longer_in_force=False)
    match = END_OF_VALIDITY_REGEX.search(markup)
    return ValidityStatus(
        no_longer_in_force=True,
        end_of_validity=match.group(1) if match else None,
    )


def fallback_url(url: str) -> Optional[str]:
    """Secondary-language variant of a EUR-Lex URL, or None if there is none."""
    for info in SUPPORTED_LANGUAGES.values():
        fallback = info.get("fallback")
        if not fallback:
            continue
        primary = f"/{info['eurlex_code']}/"
        if primary in url:
            secondary = f"/{SUPPORTED_LANGUAGES[fallback]['eurlex_code']}/"
            return url.replace(primary, secondary, 1)
    return None


class DocumentFetcher:
    """
    Fetches document markup for discovery records.

    Usage:
        fetcher = DocumentFetcher()
        html = fetcher.fetch(record)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        policy: Optional[RetryPolicy] = None,
    ):
        self.session = session or make_session(accept="text/html")
        self.policy = policy or FETCH_POLICY

    def fetch(self, record: DiscoveryRecord) -> str:
        """
        Fetch the HTML text for a record.

        Raises:
            FetchError: if both the primary and the fallback URL fail
        """
        url = record.source_url
        response = self._get(url)

        if not response.ok:
            secondary = fallback_url(url)
            if secondary:
                logger.warning(
                    f"[Fetch] {record.document_id} primary language not available "
                    f"(HTTP {response.status_code}). Trying {secondary}"
                )
                url = secondary
                response = self._get(url)

        if not response.ok:
            raise FetchError(
                f"Failed to fetch text for {record.document_id}. "
                f"HTTP {response.status_code}: {(response.text or '')[:200]}",
                url=url,
                status_code=response.status_code,
            )

        return response.text

    def _get(self, url: str) -> requests.Response:
        try:
            return request_with_retry(self.session, "GET", url, policy=self.policy)
        except requests.RequestException as e:
            raise FetchError(f"Network error fetching {url}: {e}", url=url) from e


class FileFetcher:
    """Serves the same local markup file for every record (offline seeding)."""

    def __init__(self, path: str):
        self.path = Path(path)

    def fetch(self, record: DiscoveryRecord) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise FetchError(f"Cannot read {self.path}: {e}", url=str(self.path)) from e
