"""
Tests for the orchestration scripts seed_eurlex.py and prune_no_longer_in_force.py.

Runs offline: the HTML fixture replaces EUR-Lex, hash embeddings replace
OpenAI, and the in-memory store replaces PostgreSQL.
"""

from unittest.mock import patch, MagicMock

import pytest

from tests.conftest import InMemoryVectorStore, SAMPLE_HTML_PATH, SAMPLE_CELEX


REPEALED_HTML = """
<html><body>
  <p class="status">No longer in force. Date of end of validity: 24/05/2018</p>
  <div id="text"><p>Text.</p></div>
</body></html>
"""


class StubFetcher:
    def __init__(self, pages):
        self.pages = pages

    def fetch(self, record):
        page = self.pages[record.document_id]
        if isinstance(page, Exception):
            raise page
        return page


# ---------------------------------------------------------------------------
# seed_eurlex.py
# ---------------------------------------------------------------------------

class TestSeedArgs:

    def test_defaults(self):
        import seed_eurlex
        args = seed_eurlex.parse_args([])
        assert args.limit == 10
        assert args.pages == 1
        assert args.since_year is None
        assert args.no_embed is False

    def test_discovery_only_alias(self):
        import seed_eurlex
        assert seed_eurlex.parse_args(["--discovery-only"]).no_embed is True

    def test_limits_clamped(self):
        import seed_eurlex
        args = seed_eurlex.parse_args(["--limit", "0", "--pages", "-2"])
        assert (args.limit, args.pages) == (1, 1)


class TestSeedMain:

    def test_dry_run_with_mock_html(self, capsys):
        import seed_eurlex
        code = seed_eurlex.main([
            "--celex", SAMPLE_CELEX,
            "--mock-html", str(SAMPLE_HTML_PATH),
            "--no-embed",
        ])
        out = capsys.readouterr().out
        assert code == 0
        assert "SEED SUMMARY" in out
        assert f"{SAMPLE_CELEX}: 4 passages" in out

    def test_hash_embeddings_into_store(self, capsys):
        import seed_eurlex
        store = InMemoryVectorStore()
        with patch("execution.eurlex_rag.vector_store.VectorStore", return_value=store):
            code = seed_eurlex.main([
                "--celex", f"{SAMPLE_CELEX}, 32016R0679",
                "--mock-html", str(SAMPLE_HTML_PATH),
                "--embedding-provider", "hash",
            ])
        assert code == 0
        assert set(store.documents) == {SAMPLE_CELEX, "32016R0679"}
        assert len(store.get_document_passages("32016R0679")) == 4

    def test_discovery_failure_exits_nonzero(self):
        import seed_eurlex
        from execution.eurlex_rag.exceptions import DiscoveryError
        discovery = MagicMock()
        discovery.discover.side_effect = DiscoveryError("All SPARQL endpoints failed")
        with patch("execution.eurlex_rag.discovery.MetadataDiscovery", return_value=discovery):
            assert seed_eurlex.main(["--no-embed"]) == 1

    def test_discovery_records_are_ingested(self, capsys):
        import seed_eurlex
        from execution.eurlex_rag.discovery import DiscoveryRecord
        discovery = MagicMock()
        discovery.discover.return_value = [DiscoveryRecord.manual("32019L0790")]
        with patch("execution.eurlex_rag.discovery.MetadataDiscovery", return_value=discovery):
            code = seed_eurlex.main([
                "--limit", "3", "--pages", "2", "--since-year", "2019",
                "--mock-html", str(SAMPLE_HTML_PATH), "--no-embed",
            ])
        assert code == 0
        discovery.discover.assert_called_once_with(page_size=3, page_count=2, since_year=2019)
        assert "32019L0790: 4 passages" in capsys.readouterr().out

    def test_quota_exhaustion_exits_nonzero(self, capsys):
        import seed_eurlex
        from execution.eurlex_rag.exceptions import EmbedQuotaExceeded
        embeddings = MagicMock()
        embeddings.embed_documents.side_effect = EmbedQuotaExceeded("OpenAI quota exceeded")
        with patch("execution.eurlex_rag.vector_store.VectorStore", return_value=InMemoryVectorStore()), \
                patch("execution.eurlex_rag.embeddings.get_embedding_service", return_value=embeddings):
            code = seed_eurlex.main([
                "--celex", f"{SAMPLE_CELEX},32016R0679",
                "--mock-html", str(SAMPLE_HTML_PATH),
            ])
        assert code == 1
        embeddings.embed_documents.assert_called_once()


# ---------------------------------------------------------------------------
# prune_no_longer_in_force.py
# ---------------------------------------------------------------------------

class TestPrune:

    def _store(self):
        from execution.eurlex_rag.chunker import Passage
        store = InMemoryVectorStore()
        for celex in ("32010R0001", "32016R0679", "32019L0790"):
            store.upsert_passages(celex, [Passage(celex, 0, "text")], [[1.0]])
        return store

    def _fetcher(self, sample_html):
        from execution.eurlex_rag.exceptions import FetchError
        return StubFetcher({
            "32010R0001": REPEALED_HTML,
            "32016R0679": sample_html,
            "32019L0790": FetchError("HTTP 503", status_code=503),
        })

    def test_removes_repealed(self, sample_html):
        from prune_no_longer_in_force import prune
        store = self._store()
        stats = prune(store, self._fetcher(sample_html), "ro")
        assert stats == {"checked": 3, "flagged": 1, "removed": 1, "failed": 1}
        assert "32010R0001" not in store.documents
        assert "32016R0679" in store.documents

    def test_dry_run_keeps_documents(self, sample_html):
        from prune_no_longer_in_force import prune
        store = self._store()
        stats = prune(store, self._fetcher(sample_html), "ro", dry_run=True)
        assert stats["flagged"] == 1
        assert stats["removed"] == 0
        assert "32010R0001" in store.documents

    def test_limit(self, sample_html):
        from prune_no_longer_in_force import prune
        stats = prune(self._store(), self._fetcher(sample_html), "ro", limit=1)
        assert stats["checked"] == 1
        assert stats["removed"] == 1
