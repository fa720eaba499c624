"""
Shared fixtures and test utilities for EUR-Lex RAG tests.

Provides in-memory fakes for the vector store and HTTP session, a
deterministic embedding service, and the EUR-Lex HTML fixture, so that all
tests run without API keys, databases, or external network access.
"""

import sys
import math
from pathlib import Path

import pytest
import requests
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
SAMPLE_HTML_PATH = FIXTURES_DIR / "sample_eurlex.html"
SAMPLE_CELEX = "32019R1234"


@pytest.fixture
def sample_html():
    """Return the EUR-Lex HTML fixture."""
    return SAMPLE_HTML_PATH.read_text(encoding="utf-8")


@pytest.fixture
def sample_record():
    from execution.eurlex_rag.discovery import DiscoveryRecord
    return DiscoveryRecord.manual(SAMPLE_CELEX, "ro")


# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

@pytest.fixture
def hash_embeddings():
    """Hash embedding service with small vectors to keep tests fast."""
    from execution.eurlex_rag.embeddings import HashEmbeddingService
    return HashEmbeddingService(dimensions=64)


# ---------------------------------------------------------------------------
# In-memory vector store (no database needed)
# ---------------------------------------------------------------------------

def cosine_similarity(a, b):
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore:
    """In-memory stand-in for VectorStore with the same write/read contract."""

    def __init__(self):
        self.documents = {}
        self.passages = {}  # document_id -> list of (index, text, vector)
        self.fail_next_upsert = False

    def connect(self):
        pass

    def close(self):
        pass

    def upsert_passages(self, record, passages, embeddings):
        from execution.eurlex_rag.exceptions import StorageError

        document_id = record if isinstance(record, str) else record.document_id
        if self.fail_next_upsert:
            self.fail_next_upsert = False
            raise StorageError(f"simulated failure for {document_id}", document_id=document_id)
        if len(passages) != len(embeddings):
            raise StorageError("mismatch", document_id=document_id)
        if [p.index for p in passages] != list(range(len(passages))):
            raise StorageError("non-contiguous indices", document_id=document_id)

        self.documents[document_id] = record
        self.passages[document_id] = [
            (p.index, p.text, list(v)) for p, v in zip(passages, embeddings)
        ]
        return len(passages)

    def search(self, query_embedding, top_k=5):
        from execution.eurlex_rag.vector_store import SearchResult, clamp_top_k

        scored = [
            SearchResult(
                document_id=document_id,
                passage_index=index,
                content=text,
                score=cosine_similarity(query_embedding, vector),
            )
            for document_id, rows in self.passages.items()
            for index, text, vector in rows
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:clamp_top_k(top_k)]

    def get_document_passages(self, document_id):
        return [
            {"passage_index": index, "content": text}
            for index, text, _ in self.passages.get(document_id, [])
        ]

    def list_documents(self, limit=None):
        docs = [{"document_id": d} for d in self.documents]
        return docs[:limit] if limit else docs

    def delete_document(self, document_id):
        existed = document_id in self.documents
        self.documents.pop(document_id, None)
        self.passages.pop(document_id, None)
        return existed


@pytest.fixture
def memory_store():
    return InMemoryVectorStore()


# ---------------------------------------------------------------------------
# Scripted HTTP session
# ---------------------------------------------------------------------------

class FakeResponse:
    """Minimal requests.Response stand-in."""

    def __init__(self, status_code=200, text="", json_data=None, content_type="text/html"):
        self.status_code = status_code
        self.text = text
        self._json = json_data
        self.headers = {"content-type": content_type}

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class ScriptedSession:
    """
    Returns scripted responses in order; an Exception instance in the script
    is raised instead of returned. Records every call.
    """

    def __init__(self, script):
        self.script = list(script)
        self.calls = []
        self.headers = {}

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if not self.script:
            raise requests.ConnectionError("script exhausted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def sparql_json(rows):
    """Build a SPARQL JSON response from a list of {var: value} dicts."""
    bindings = [
        {name: {"type": "literal", "value": value} for name, value in row.items()}
        for row in rows
    ]
    return FakeResponse(
        status_code=200,
        json_data={"head": {"vars": []}, "results": {"bindings": bindings}},
        content_type="application/sparql-results+json; charset=utf-8",
    )


@pytest.fixture
def no_sleep(monkeypatch):
    """Disable backoff sleeps in the HTTP retry helper."""
    import execution.eurlex_rag.http_utils as http_utils
    monkeypatch.setattr(http_utils.time, "sleep", lambda seconds: None)
