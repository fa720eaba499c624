"""
EUR-Lex RAG - Grounded Question Answering over EU Legislation

This module provides:
- Metadata discovery of recent Regulations and Directives via SPARQL
- Fetching and extraction of EUR-Lex HTML texts
- Sentence-aware chunking that keeps article headings with their text
- Embedding and idempotent storage in PostgreSQL + pgvector
- Retrieval and threshold-gated answers with passage citations

Architecture follows the 3-layer pattern:
- Layer 1 (Directives): operator SOPs
- Layer 2 (Orchestration): seed_eurlex.py / prune_no_longer_in_force.py
- Layer 3 (Execution): This module and its submodules
"""

__version__ = "0.1.0"

from .discovery import MetadataDiscovery, DiscoveryRecord
from .fetcher import DocumentFetcher, check_validity
from .extractor import ContentExtractor, classify
from .chunker import PassageChunker, build_chunks
from .embeddings import get_embedding_service
from .vector_store import VectorStore
from .retriever import PassageRetriever
from .answerer import GroundedAnswerer
from .ingestion import IngestionPipeline

__all__ = [
    "MetadataDiscovery",
    "DiscoveryRecord",
    "DocumentFetcher",
    "check_validity",
    "ContentExtractor",
    "classify",
    "PassageChunker",
    "build_chunks",
    "get_embedding_service",
    "VectorStore",
    "PassageRetriever",
    "GroundedAnswerer",
    "IngestionPipeline",
]
