"""
Seed the EUR-Lex RAG with recent EU Regulations and Directives.

Pipeline per act: SPARQL discovery -> EUR-Lex HTML fetch -> extraction ->
sentence-aware chunking -> embedding -> PostgreSQL + pgvector.

Usage:
    python seed_eurlex.py --limit 10 --pages 2 --since-year 2019
    python seed_eurlex.py --celex 32016R0679,32019L0790
    python seed_eurlex.py --limit 5 --no-embed
    python seed_eurlex.py --celex 32016R0679 --mock-html tests/fixtures/sample_eurlex.html --embedding-provider hash
"""

import sys
import time
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


def parse_args(argv=None):
    arg_parser = argparse.ArgumentParser(description="Seed EUR-Lex acts into the RAG store")
    arg_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Rows per discovery page (default: 10)",
    )
    arg_parser.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Number of discovery pages (default: 1)",
    )
    arg_parser.add_argument(
        "--since-year",
        type=int,
        default=None,
        help="Only acts from this year onwards",
    )
    arg_parser.add_argument(
        "--celex",
        type=str,
        default=None,
        help="Comma-separated CELEX ids; bypasses discovery",
    )
    arg_parser.add_argument(
        "--no-embed",
        "--discovery-only",
        dest="no_embed",
        action="store_true",
        help="Fetch, parse and chunk only; skip embedding and database writes",
    )
    arg_parser.add_argument(
        "--mock-html",
        type=str,
        default=None,
        help="Use this local HTML file instead of fetching from EUR-Lex",
    )
    arg_parser.add_argument(
        "--embedding-provider",
        choices=["openai", "hash"],
        default=None,
        help="Embedding provider (default: EMBEDDING_PROVIDER or openai)",
    )
    arg_parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create tables and the vector index before seeding",
    )
    args = arg_parser.parse_args(argv)
    args.limit = max(1, args.limit)
    args.pages = max(1, args.pages)
    return args


def main(argv=None) -> int:
    args = parse_args(argv)

    from execution.eurlex_rag.discovery import DiscoveryRecord, MetadataDiscovery
    from execution.eurlex_rag.exceptions import DiscoveryError
    from execution.eurlex_rag.fetcher import DocumentFetcher, FileFetcher
    from execution.eurlex_rag.ingestion import IngestionPipeline
    from execution.eurlex_rag.language_config import LanguageConfig

    lang_config = LanguageConfig.for_language("ro")

    t_start = time.time()
    if args.celex:
        celexes = [c.strip() for c in args.celex.split(",") if c.strip()]
        logger.info(f"[Manual] CELEX override detected: {', '.join(celexes)}")
        records = [DiscoveryRecord.manual(c, lang_config.language) for c in celexes]
    else:
        try:
            records = MetadataDiscovery().discover(
                page_size=args.limit,
                page_count=args.pages,
                since_year=args.since_year,
            )
        except DiscoveryError as e:
            logger.error(f"Discovery failed: {e}")
            return 1
    t_disc = time.time()
    logger.info(f"Discovery found {len(records)} items in {t_disc - t_start:.2f}s")

    fetcher = FileFetcher(args.mock_html) if args.mock_html else DocumentFetcher()

    store = None
    embedding_service = None
    if not args.no_embed:
        from execution.eurlex_rag.embeddings import get_embedding_service
        from execution.eurlex_rag.vector_store import VectorStore, VectorStoreConfig

        embedding_service = get_embedding_service(
            provider=args.embedding_provider,
            language_config=lang_config,
        )
        store = VectorStore(VectorStoreConfig(
            embedding_dimensions=lang_config.embedding_dimensions,
        ))
        store.connect()
        if args.init_schema:
            store.initialize_schema()
            store.create_vector_index()

    pipeline = IngestionPipeline(
        fetcher,
        embedding_service=embedding_service,
        store=store,
        dry_run=args.no_embed,
    )
    try:
        summary = pipeline.run(records)
    finally:
        if store is not None:
            store.close()

    t_end = time.time()

    print("\n" + "=" * 60)
    print("SEED SUMMARY")
    print("=" * 60)
    print(f"Total docs:       {summary.total_documents}")
    print(f"Total passages:   {summary.total_passages}")
    print(f"Avg passage len:  {summary.avg_passage_length} chars")
    print(f"Skipped:          {summary.count('no_longer_valid')} no longer in force, "
          f"{summary.count('extraction_empty')} empty")
    print(f"Failed:           {summary.count('failed')}")
    print(
        f"Duration:         discovery {t_disc - t_start:.2f}s, "
        f"fetch+parse {summary.fetch_parse_seconds:.2f}s, "
        f"embed+db {summary.embed_db_seconds:.2f}s, "
        f"overall {t_end - t_start:.2f}s"
    )
    print(f"Mini report:      {summary.mini_report()}")
    print("=" * 60)

    if summary.aborted:
        logger.error(f"Run aborted: {summary.abort_reason}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
