"""
EUR-Lex HTML Content Extractor

Turns a EUR-Lex text page into an ordered list of heading/body tokens:
1. Strip scripts, navigation, and known portal boilerplate
2. Locate the main legal-text container by an ordered selector list
3. Walk h1-h4, p, and li elements in document order
4. Classify each text as heading or body and merge adjacent headings
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from bs4 import BeautifulSoup

from .language_patterns import (
    HEADING_KEYWORD_REGEX,
    HEADING_TAGS,
    ROMAN_NUMERAL_PREFIX_REGEX,
)

logger = logging.getLogger(__name__)

# Elements that never carry legal text
NON_CONTENT_TAGS = ["script", "style", "link", "noscript", "iframe", "svg"]

BOILERPLATE_SELECTORS = [
    "nav", "header", "footer", "aside",
    ".navbar", ".header", ".footer", ".nav",
    "#header", "#footer", "#toolbar", ".toolbar",
    ".breadcrumb", ".breadcrumbs", ".menu",
    ".leftCol", ".rightCol", ".site-header", ".site-footer",
    ".cookie", "#pageheader", "#pagefooter", ".portalnav",
]

# Tried in order; first match wins
MAIN_CONTENT_SELECTORS = [
    "#text", "#documentContent", "#PP", "main", "article",
    ".tabContent", "#tc-main", ".content",
]

CONTENT_ELEMENTS = ["h1", "h2", "h3", "h4", "p", "li"]

LIST_ITEM_PREFIX = "• "


class TokenKind(str, Enum):
    HEADING = "heading"
    BODY = "body"


@dataclass
class ContentToken:
    """A unit of extracted text."""
    kind: TokenKind
    text: str

    @property
    def is_heading(self) -> bool:
        return self.kind == TokenKind.HEADING


def clean_text(text: str) -> str:
    """Normalize non-breaking spaces, horizontal whitespace and blank-line runs."""
    text = text.replace("\u00a0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"[\r\f]+", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# =============================================================================
# Heading Classification
# =============================================================================

# Each matcher receives (tag_name, stripped_text); any match means heading
HEADING_MATCHERS: list[tuple[str, Callable[[str, str], bool]]] = [
    ("heading_tag", lambda tag, text: tag in HEADING_TAGS),
    ("keyword_prefix", lambda tag, text: bool(HEADING_KEYWORD_REGEX.match(text))),
    ("roman_numeral", lambda tag, text: bool(ROMAN_NUMERAL_PREFIX_REGEX.match(text))),
]


def classify(tag_name: Optional[str], text: str) -> TokenKind:
    """
    Classify a text element as heading or body.

    Pure function of the element name and its text. Empty text is body.
    """
    stripped = text.strip()
    if not stripped:
        return TokenKind.BODY
    tag = (tag_name or "").lower()
    for _name, matcher in HEADING_MATCHERS:
        if matcher(tag, stripped):
            return TokenKind.HEADING
    return TokenKind.BODY


def merge_headings(tokens: list[ContentToken]) -> list[ContentToken]:
    """Coalesce runs of consecutive headings into one newline-joined heading."""
    merged: list[ContentToken] = []
    for token in tokens:
        if merged and merged[-1].is_heading and token.is_heading:
            merged[-1] = ContentToken(TokenKind.HEADING, merged[-1].text + "\n" + token.text)
        else:
            merged.append(token)
    return merged


class ContentExtractor:
    """
    Extracts ordered content tokens from EUR-Lex markup.

    Usage:
        tokens = ContentExtractor().extract(html)
    """

    def __init__(self, parser: str = "html.parser"):
        self.parser = parser

    def extract(self, markup: str) -> list[ContentToken]:
        soup = BeautifulSoup(markup, self.parser)

        for element in soup.find_all(NON_CONTENT_TAGS):
            element.extract()
        for element in soup.select(", ".join(BOILERPLATE_SELECTORS)):
            element.extract()

        main = self._find_main(soup)

        tokens = []
        for element in main.find_all(CONTENT_ELEMENTS):
            text = clean_text(element.get_text())
            if not text:
                continue
            if element.name == "li":
                text = LIST_ITEM_PREFIX + text
            tokens.append(ContentToken(classify(element.name, text), text))

        merged = merge_headings(tokens)
        logger.debug(f"Extracted {len(merged)} tokens ({len(tokens)} before merge)")
        return merged

    @staticmethod
    def _find_main(soup: BeautifulSoup):
        for selector in MAIN_CONTENT_SELECTORS:
            found = soup.select_one(selector)
            if found is not None:
                return found
        return soup.body or soup
