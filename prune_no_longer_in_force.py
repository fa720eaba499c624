"""
Remove stored EUR-Lex acts that are no longer in force.

Fetches the EUR-Lex text page of every stored document and deletes the
documents whose page carries a "no longer in force" marker.

Usage:
    python prune_no_longer_in_force.py --dry-run
    python prune_no_longer_in_force.py --limit 50

Environment:
    EURLEX_LANG  EUR-Lex language code used for the status pages (default: RO)
"""

import os
import sys
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def prune(store, fetcher, language: str, dry_run: bool = False, limit=None) -> dict:
    """
    Check stored documents and delete those no longer in force.

    Returns:
        Counts: checked, flagged, removed, failed
    """
    from execution.eurlex_rag.discovery import DiscoveryRecord
    from execution.eurlex_rag.exceptions import FetchError
    from execution.eurlex_rag.fetcher import check_validity

    documents = store.list_documents()
    document_ids = sorted(d["document_id"] for d in documents)
    if limit:
        document_ids = document_ids[:limit]

    stats = {"checked": len(document_ids), "flagged": 0, "removed": 0, "failed": 0}

    for celex in document_ids:
        record = DiscoveryRecord.manual(celex, language)
        try:
            markup = fetcher.fetch(record)
        except FetchError as e:
            logger.warning(f"Skip {celex}: {e}")
            stats["failed"] += 1
            continue

        validity = check_validity(markup)
        if not validity.no_longer_in_force:
            continue

        stats["flagged"] += 1
        end = validity.end_of_validity or "n/a"
        if dry_run:
            logger.info(f"Would remove {celex} (end of validity: {end})")
        elif store.delete_document(celex):
            stats["removed"] += 1
            logger.info(f"Removed {celex} (end of validity: {end})")

    return stats


def main(argv=None) -> int:
    arg_parser = argparse.ArgumentParser(description="Prune EUR-Lex acts no longer in force")
    arg_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be removed without deleting",
    )
    arg_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Check at most this many documents",
    )
    args = arg_parser.parse_args(argv)

    from execution.eurlex_rag.fetcher import DocumentFetcher
    from execution.eurlex_rag.vector_store import VectorStore

    language = os.getenv("EURLEX_LANG", "RO").lower()

    store = VectorStore()
    store.connect()
    try:
        stats = prune(store, DocumentFetcher(), language, dry_run=args.dry_run, limit=args.limit)
    finally:
        store.close()

    print("\n" + "=" * 60)
    print("PRUNE SUMMARY")
    print("=" * 60)
    print(f"Checked:                      {stats['checked']} documents")
    print(f"Flagged (no longer in force): {stats['flagged']}")
    if not args.dry_run:
        print(f"Removed from DB:              {stats['removed']}")
    print(f"Fetch failures:               {stats['failed']}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
