"""
Batch Ingestion Pipeline

Processes discovery records one at a time:
fetch -> status check -> extract -> chunk -> embed -> store.

A record that fails or is skipped is logged with its CELEX id and the batch
continues. Only an exhausted embedding quota stops the run, since every
later record would fail the same way.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Optional

from .chunker import PassageChunker
from .discovery import DiscoveryRecord
from .exceptions import EmbedQuotaExceeded, ExtractionEmpty, NoLongerValid, RecordSkipped
from .extractor import ContentExtractor
from .fetcher import check_validity

logger = logging.getLogger(__name__)

STATUS_INGESTED = "ingested"
STATUS_DRY_RUN = "dry_run"
STATUS_FAILED = "failed"


@dataclass
class IngestionReport:
    """Outcome of processing one record."""
    document_id: str
    status: str
    passage_count: int = 0
    avg_passage_length: int = 0
    fetch_ms: float = 0.0
    parse_ms: float = 0.0
    db_ms: float = 0.0
    total_ms: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "status": self.status,
            "passage_count": self.passage_count,
            "avg_passage_length": self.avg_passage_length,
            "fetch_ms": self.fetch_ms,
            "parse_ms": self.parse_ms,
            "db_ms": self.db_ms,
            "total_ms": self.total_ms,
            "error": self.error,
        }


@dataclass
class IngestionSummary:
    """Aggregate of a batch run."""
    reports: list[IngestionReport] = field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None

    @property
    def total_documents(self) -> int:
        return len(self.reports)

    @property
    def total_passages(self) -> int:
        return sum(r.passage_count for r in self.reports)

    @property
    def avg_passage_length(self) -> int:
        total = self.total_passages
        if not total:
            return 0
        chars = sum(r.avg_passage_length * r.passage_count for r in self.reports)
        return round(chars / total)

    @property
    def fetch_parse_seconds(self) -> float:
        return sum(r.fetch_ms + r.parse_ms for r in self.reports) / 1000

    @property
    def embed_db_seconds(self) -> float:
        return sum(r.db_ms for r in self.reports) / 1000

    def count(self, status: str) -> int:
        return sum(1 for r in self.reports if r.status == status)

    def mini_report(self) -> str:
        """One line listing every processed CELEX id with its passage count."""
        brief = "; ".join(f"{r.document_id}: {r.passage_count} passages" for r in self.reports)
        return brief or "no documents processed"


def _elapsed_ms(since: float) -> float:
    return (time.perf_counter() - since) * 1000


class IngestionPipeline:
    """
    Sequential ingestion of discovery records.

    Usage:
        pipeline = IngestionPipeline(fetcher, embedding_service, store)
        summary = pipeline.run(records)

    With dry_run=True, records are fetched, parsed and chunked but nothing is
    embedded or written.
    """

    def __init__(
        self,
        fetcher,
        embedding_service=None,
        store=None,
        extractor: Optional[ContentExtractor] = None,
        chunker: Optional[PassageChunker] = None,
        dry_run: bool = False,
    ):
        if not dry_run and (embedding_service is None or store is None):
            raise ValueError("embedding_service and store are required unless dry_run is set")
        self.fetcher = fetcher
        self.embeddings = embedding_service
        self.store = store
        self.extractor = extractor or ContentExtractor()
        self.chunker = chunker or PassageChunker()
        self.dry_run = dry_run

    def process_record(self, record: DiscoveryRecord) -> IngestionReport:
        """
        Run one record through the pipeline.

        Raises:
            NoLongerValid: the page carries a "no longer in force" marker
            ExtractionEmpty: no content could be extracted
            FetchError, EmbedError, StorageError: on failure of that stage
        """
        start = time.perf_counter()
        markup = self.fetcher.fetch(record)
        fetch_ms = _elapsed_ms(start)

        validity = check_validity(markup)
        if validity.no_longer_in_force:
            raise NoLongerValid(record.document_id, validity.end_of_validity)

        parse_start = time.perf_counter()
        tokens = self.extractor.extract(markup)
        passages = self.chunker.chunk(record.document_id, tokens)
        parse_ms = _elapsed_ms(parse_start)

        if not passages:
            raise ExtractionEmpty(f"{record.document_id}: no content extracted")

        db_start = time.perf_counter()
        if self.dry_run:
            logger.info(
                f"[Dry-run] {record.document_id}: parsed {len(passages)} passages. "
                f"Skipping embed+DB."
            )
            status = STATUS_DRY_RUN
        else:
            # Embed before opening the transaction to keep it short
            embeddings = self.embeddings.embed_documents([p.text for p in passages])
            self.store.upsert_passages(record, passages, embeddings)
            status = STATUS_INGESTED
        db_ms = _elapsed_ms(db_start)

        return IngestionReport(
            document_id=record.document_id,
            status=status,
            passage_count=len(passages),
            avg_passage_length=round(sum(len(p.text) for p in passages) / len(passages)),
            fetch_ms=fetch_ms,
            parse_ms=parse_ms,
            db_ms=db_ms,
            total_ms=_elapsed_ms(start),
        )

    def run(self, records: list[DiscoveryRecord]) -> IngestionSummary:
        """
        Process records sequentially.

        Returns:
            IngestionSummary with one report per attempted record; aborted is
            set when the embedding quota ran out
        """
        summary = IngestionSummary()
        total = len(records)

        for i, record in enumerate(records):
            celex = record.document_id
            logger.info(f"[{i + 1}/{total}] {celex}: fetching and processing...")
            start = time.perf_counter()

            try:
                report = self.process_record(record)
                logger.info(
                    f"Processed {celex}: {report.passage_count} passages "
                    f"(avg {report.avg_passage_length} chars). Took {report.total_ms:.0f}ms"
                )
            except RecordSkipped as e:
                logger.info(f"[Skip] {e}. Skipping import.")
                report = IngestionReport(
                    document_id=celex,
                    status=e.reason,
                    total_ms=_elapsed_ms(start),
                    error=str(e),
                )
            except EmbedQuotaExceeded as e:
                logger.error(f"Failed {celex}: {e}. Aborting run.")
                summary.reports.append(IngestionReport(
                    document_id=celex,
                    status=STATUS_FAILED,
                    total_ms=_elapsed_ms(start),
                    error=str(e),
                ))
                summary.aborted = True
                summary.abort_reason = str(e)
                break
            except Exception as e:
                logger.error(f"Failed {celex}: {type(e).__name__}: {e}")
                report = IngestionReport(
                    document_id=celex,
                    status=STATUS_FAILED,
                    total_ms=_elapsed_ms(start),
                    error=str(e),
                )

            summary.reports.append(report)

        return summary
