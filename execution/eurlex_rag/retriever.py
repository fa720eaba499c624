"""
Passage Retriever

Embeds a question and returns the nearest stored passages by cosine
similarity. Stateless: every call embeds and searches afresh, so concurrent
queries need no coordination beyond the store's connection pool.
"""

import time
import logging
from typing import Optional
from dataclasses import dataclass

from .vector_store import MAX_TOP_K, SearchResult, VectorStore

logger = logging.getLogger(__name__)


@dataclass
class RetrievalConfig:
    """Configuration for retrieval."""
    # Passages returned when the caller doesn't ask for a specific k
    default_k: int = 5
    # Upper bound on k, mirrors the store's clamp
    max_k: int = MAX_TOP_K


class PassageRetriever:
    """
    Nearest-neighbour retrieval over stored passages.

    Usage:
        retriever = PassageRetriever(store, embeddings)
        results = retriever.retrieve("Care este scopul regulamentului?", k=5)
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_service,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize retriever.

        Args:
            vector_store: Store providing search(vector, top_k)
            embedding_service: Service providing embed_query(text)
            config: Optional retrieval configuration
        """
        self.store = vector_store
        self.embeddings = embedding_service
        self.config = config or RetrievalConfig()

    def retrieve(self, query_text: str, k: Optional[int] = None) -> list[SearchResult]:
        """
        Retrieve the k passages most similar to the query.

        Args:
            query_text: Natural-language question
            k: Number of passages; defaults to config.default_k

        Returns:
            SearchResults ordered by descending score (empty for a blank query)
        """
        query_text = (query_text or "").strip()
        if not query_text:
            return []

        k = self.config.default_k if k is None else k
        k = max(1, min(k, self.config.max_k))

        start = time.perf_counter()
        vector = self.embeddings.embed_query(query_text)
        results = self.store.search(vector, top_k=k)
        elapsed_ms = (time.perf_counter() - start) * 1000

        top = f"{results[0].score:.3f}" if results else "n/a"
        logger.info(f"Retrieved {len(results)} passages (k={k}, top score {top}) in {elapsed_ms:.0f}ms")
        return results
