"""
Error taxonomy for the EUR-Lex RAG pipeline.

Ingestion errors are caught per record in the batch loop; only
EmbedQuotaExceeded aborts a run. Query-path errors surface to the caller.
"""

from typing import Optional


class EurLexRagError(Exception):
    """Base class for all pipeline errors."""


class DiscoveryError(EurLexRagError):
    """Every endpoint and query shape failed for a discovery page."""

    def __init__(self, message: str, page: int = 0):
        super().__init__(message)
        self.page = page


class FetchError(EurLexRagError):
    """Document markup could not be fetched (retries exhausted or non-retryable status)."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RecordSkipped(EurLexRagError):
    """A record was intentionally not ingested."""

    reason = "skipped"


class NoLongerValid(RecordSkipped):
    """The act carries a 'no longer in force' status marker."""

    reason = "no_longer_valid"

    def __init__(self, document_id: str, end_of_validity: Optional[str] = None):
        super().__init__(
            f"{document_id} is no longer in force (end: {end_of_validity or 'n/a'})"
        )
        self.document_id = document_id
        self.end_of_validity = end_of_validity


class ExtractionEmpty(RecordSkipped):
    """No usable content was recovered from the markup."""

    reason = "extraction_empty"


class EmbedError(EurLexRagError):
    """Embedding request failed."""


class EmbedQuotaExceeded(EmbedError):
    """The embedding provider reported an exhausted quota. Retrying cannot help."""


class EmbedTransient(EmbedError):
    """Timeout, connection or rate-limit failure that persisted through retries."""


class StorageError(EurLexRagError):
    """A per-document write was rolled back."""

    def __init__(self, message: str, document_id: str = ""):
        super().__init__(message)
        self.document_id = document_id


class GenerationError(EurLexRagError):
    """The generation capability failed while answering a question."""


class ValidationError(EurLexRagError):
    """Malformed query request."""

    def __init__(self, message: str, details: Optional[list] = None):
        super().__init__(message)
        self.details = details or []
