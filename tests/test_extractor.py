"""
Tests for execution/eurlex_rag/extractor.py

Covers: clean_text, the heading classifier, heading merge, boilerplate
        removal, main-region selection, and list item prefixing.
"""

import pytest


# ---------------------------------------------------------------------------
# clean_text
# ---------------------------------------------------------------------------

class TestCleanText:

    def test_collapses_horizontal_whitespace(self):
        from execution.eurlex_rag.extractor import clean_text
        assert clean_text("a  \t b") == "a b"

    def test_replaces_non_breaking_space(self):
        from execution.eurlex_rag.extractor import clean_text
        assert clean_text("Articolul\u00a01") == "Articolul 1"

    def test_limits_blank_lines(self):
        from execution.eurlex_rag.extractor import clean_text
        assert clean_text("a\n\n\n\nb") == "a\n\nb"

    def test_strips(self):
        from execution.eurlex_rag.extractor import clean_text
        assert clean_text("  \n text \n ") == "text"


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------

class TestClassify:

    @pytest.mark.parametrize("tag", ["h1", "h2", "h3", "h4", "H2"])
    def test_heading_tags(self, tag):
        from execution.eurlex_rag.extractor import classify, TokenKind
        assert classify(tag, "Anything at all") == TokenKind.HEADING

    @pytest.mark.parametrize("text", [
        "Articolul 5",
        "Article 12",
        "Art. 3",
        "Capitolul II",
        "CHAPTER III",
        "Secțiunea 2",
        "Section 4",
        "Annex I",
        "Anexa II",
        "Titlul IV",
    ])
    def test_keyword_prefixes(self, text):
        from execution.eurlex_rag.extractor import classify, TokenKind
        assert classify("p", text) == TokenKind.HEADING

    @pytest.mark.parametrize("text", ["IV. Dispoziții finale", "II Domeniu", "XLC. Test"])
    def test_roman_numeral_prefix(self, text):
        from execution.eurlex_rag.extractor import classify, TokenKind
        assert classify("p", text) == TokenKind.HEADING

    @pytest.mark.parametrize("text", [
        "Prezentul regulament se aplică tuturor operatorilor.",
        "Intrarea în vigoare",
        "In accordance with Article 5.",
        "Illegal content shall be removed.",
    ])
    def test_body_text(self, text):
        from execution.eurlex_rag.extractor import classify, TokenKind
        assert classify("p", text) == TokenKind.BODY

    def test_empty_text_is_body(self):
        from execution.eurlex_rag.extractor import classify, TokenKind
        assert classify("h2", "   ") == TokenKind.BODY

    def test_missing_tag_name(self):
        from execution.eurlex_rag.extractor import classify, TokenKind
        assert classify(None, "Articolul 1") == TokenKind.HEADING
        assert classify(None, "text") == TokenKind.BODY

    def test_is_pure(self):
        from execution.eurlex_rag.extractor import classify
        assert classify("p", "Articolul 1") == classify("p", "Articolul 1")


# ---------------------------------------------------------------------------
# merge_headings
# ---------------------------------------------------------------------------

class TestMergeHeadings:

    def test_adjacent_headings_merge(self):
        from execution.eurlex_rag.extractor import ContentToken, TokenKind, merge_headings
        tokens = [
            ContentToken(TokenKind.HEADING, "Capitolul I"),
            ContentToken(TokenKind.HEADING, "Articolul 1"),
            ContentToken(TokenKind.BODY, "Text."),
        ]
        merged = merge_headings(tokens)
        assert len(merged) == 2
        assert merged[0].text == "Capitolul I\nArticolul 1"
        assert merged[0].is_heading

    def test_body_separates_headings(self):
        from execution.eurlex_rag.extractor import ContentToken, TokenKind, merge_headings
        tokens = [
            ContentToken(TokenKind.HEADING, "Articolul 1"),
            ContentToken(TokenKind.BODY, "Text."),
            ContentToken(TokenKind.HEADING, "Articolul 2"),
        ]
        assert len(merge_headings(tokens)) == 3

    def test_does_not_mutate_input(self):
        from execution.eurlex_rag.extractor import ContentToken, TokenKind, merge_headings
        first = ContentToken(TokenKind.HEADING, "A")
        merge_headings([first, ContentToken(TokenKind.HEADING, "B")])
        assert first.text == "A"


# ---------------------------------------------------------------------------
# ContentExtractor
# ---------------------------------------------------------------------------

class TestContentExtractor:

    def test_fixture_headings_and_body(self, sample_html):
        from execution.eurlex_rag.extractor import ContentExtractor
        tokens = ContentExtractor().extract(sample_html)
        headings = [t.text for t in tokens if t.is_heading]
        assert headings == ["Articolul 1", "Articolul 2", "Articolul 3"]
        assert any("registrelor electronice" in t.text for t in tokens)

    def test_fixture_boilerplate_removed(self, sample_html):
        from execution.eurlex_rag.extractor import ContentExtractor
        text = "\n".join(t.text for t in ContentExtractor().extract(sample_html))
        assert "cookie" not in text
        assert "Acasă" not in text
        assert "Oficiul pentru Publicații" not in text
        assert "analytics" not in text

    def test_list_items_prefixed(self, sample_html):
        from execution.eurlex_rag.extractor import ContentExtractor, LIST_ITEM_PREFIX
        items = [t for t in ContentExtractor().extract(sample_html) if t.text.startswith(LIST_ITEM_PREFIX)]
        assert len(items) == 2
        assert "registru electronic" in items[0].text

    def test_main_region_preferred_over_body(self):
        from execution.eurlex_rag.extractor import ContentExtractor
        html = """
        <html><body>
          <p>Outside text.</p>
          <div id="documentContent"><p>Inside text.</p></div>
        </body></html>
        """
        tokens = ContentExtractor().extract(html)
        assert [t.text for t in tokens] == ["Inside text."]

    def test_selector_order(self):
        from execution.eurlex_rag.extractor import ContentExtractor
        html = """
        <html><body>
          <main><p>Main text.</p></main>
          <div id="PP"><p>PP text.</p></div>
        </body></html>
        """
        tokens = ContentExtractor().extract(html)
        assert [t.text for t in tokens] == ["PP text."]

    def test_falls_back_to_body(self):
        from execution.eurlex_rag.extractor import ContentExtractor
        html = "<html><body><h2>Capitolul I</h2><h3>Articolul 1</h3><p>Body.</p></body></html>"
        tokens = ContentExtractor().extract(html)
        assert len(tokens) == 2
        assert tokens[0].text == "Capitolul I\nArticolul 1"
        assert tokens[1].text == "Body."

    def test_empty_elements_skipped(self):
        from execution.eurlex_rag.extractor import ContentExtractor
        tokens = ContentExtractor().extract("<div id='text'><p>  </p><p>Real.</p></div>")
        assert [t.text for t in tokens] == ["Real."]

    def test_no_content(self):
        from execution.eurlex_rag.extractor import ContentExtractor
        assert ContentExtractor().extract("<html><body><nav><p>Menu</p></nav></body></html>") == []
