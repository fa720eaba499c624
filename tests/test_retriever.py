"""
Tests for execution/eurlex_rag/retriever.py

Covers: blank queries, default and clamped k, ordering, and retrieval over
        the in-memory store with hash embeddings.
"""

from unittest.mock import MagicMock

import pytest


def _retriever(store=None, embeddings=None):
    from execution.eurlex_rag.retriever import PassageRetriever
    embeddings = embeddings or MagicMock()
    if isinstance(embeddings, MagicMock):
        embeddings.embed_query.return_value = [0.1, 0.2]
    store = store or MagicMock()
    return PassageRetriever(store, embeddings), store, embeddings


class TestPassageRetriever:

    def test_blank_query_returns_nothing(self):
        retriever, store, embeddings = _retriever()
        assert retriever.retrieve("   ") == []
        embeddings.embed_query.assert_not_called()
        store.search.assert_not_called()

    def test_default_k(self):
        retriever, store, embeddings = _retriever()
        store.search.return_value = []
        retriever.retrieve("Ce este un operator?")
        assert store.search.call_args.kwargs["top_k"] == 5

    def test_k_clamped(self):
        retriever, store, embeddings = _retriever()
        store.search.return_value = []
        retriever.retrieve("q", k=500)
        assert store.search.call_args.kwargs["top_k"] == 50
        retriever.retrieve("q", k=0)
        assert store.search.call_args.kwargs["top_k"] == 1

    def test_embeds_stripped_query(self):
        retriever, store, embeddings = _retriever()
        store.search.return_value = []
        retriever.retrieve("  întrebare  ")
        embeddings.embed_query.assert_called_once_with("întrebare")

    def test_exact_passage_ranks_first(self, memory_store, hash_embeddings):
        from execution.eurlex_rag.chunker import Passage
        texts = ["Primul pasaj.", "Al doilea pasaj.", "Al treilea pasaj."]
        passages = [Passage("32016R0679", i, t) for i, t in enumerate(texts)]
        memory_store.upsert_passages("32016R0679", passages, hash_embeddings.embed_documents(texts))

        retriever, _, _ = _retriever(memory_store, hash_embeddings)
        results = retriever.retrieve("Al doilea pasaj.", k=3)
        assert len(results) == 3
        assert results[0].passage_index == 1
        assert results[0].score == pytest.approx(1.0)
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)
