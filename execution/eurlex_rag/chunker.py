"""
Sentence-Aware Passage Chunker

Packs extracted heading/body tokens into retrieval passages of roughly
min_size..max_size characters:
- A heading always starts a new passage and stays attached to the text after it
- Body text is appended sentence by sentence
- A passage is emitted once it has reached min_size and the next sentence won't fit
- A sentence longer than max_size is hard-split into max_size slices
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .extractor import ContentToken, clean_text
from .language_patterns import SENTENCE_BOUNDARY_REGEX

logger = logging.getLogger(__name__)


@dataclass
class Passage:
    """A retrieval unit of one document."""
    document_id: str
    index: int  # 0-based, contiguous per document
    text: str

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "index": self.index,
            "text": self.text,
        }


@dataclass
class ChunkConfig:
    """Configuration for chunking parameters (characters)."""
    min_size: int = 800
    max_size: int = 1000

    def __post_init__(self):
        if self.min_size <= 0 or self.max_size < self.min_size:
            raise ValueError(
                f"Invalid chunk sizes: min_size={self.min_size}, max_size={self.max_size}"
            )


def split_sentences(paragraph: str) -> list[str]:
    """
    Split a paragraph on ./!/? followed by whitespace and a capital letter.

    Whitespace is collapsed first. Abbreviations followed by a lowercase word
    or a digit ("art. 5", "lit. (a)") do not split.
    """
    text = " ".join(paragraph.split())
    if not text:
        return []
    parts = SENTENCE_BOUNDARY_REGEX.split(text)
    return parts if len(parts) > 1 else [text]


class _PassageBuffer:
    """Accumulator for the passage under construction."""

    def __init__(self):
        self.current = ""
        self.passages: list[str] = []

    def __len__(self) -> int:
        return len(self.current)

    def flush(self) -> None:
        cleaned = clean_text(self.current)
        if cleaned:
            self.passages.append(cleaned)
        self.current = ""

    def _separator(self) -> str:
        # Text after a heading line starts on the next line without padding
        return "" if self.current.endswith("\n") else " "

    def append(self, text: str) -> None:
        self.current = self.candidate(text)

    def candidate(self, text: str) -> str:
        return self.current + self._separator() + text if self.current else text


def build_chunks(
    tokens: list[ContentToken],
    min_size: int = 800,
    max_size: int = 1000,
) -> list[str]:
    """
    Pack tokens into passage texts.

    Every passage is non-empty. Passages stay within max_size except when a
    hard-split slice is merged into a non-empty buffer that is still below
    min_size; that slice is appended to the buffer rather than emitted alone.

    Args:
        tokens: Ordered heading/body tokens
        min_size: Size at which a passage may be emitted
        max_size: Size a passage should not exceed

    Returns:
        Passage texts in document order
    """
    buffer = _PassageBuffer()

    for token in tokens:
        if token.is_heading:
            if buffer.current.strip():
                buffer.flush()
            buffer.current += ("\n" if buffer.current else "") + token.text + "\n"
            continue

        for sentence in split_sentences(token.text):
            candidate = buffer.candidate(sentence)
            if len(candidate) <= max_size:
                buffer.current = candidate
            elif len(sentence) >= max_size:
                for start in range(0, len(sentence), max_size):
                    piece = sentence[start:start + max_size]
                    if len(buffer) + len(piece) + 1 > max_size and len(buffer) >= min_size:
                        buffer.flush()
                    buffer.append(piece)
            elif len(buffer) >= min_size:
                buffer.flush()
                buffer.current = sentence
            else:
                # Too short to emit, but the sentence won't fit either
                if buffer.current:
                    buffer.flush()
                buffer.current = sentence

    if buffer.current.strip():
        buffer.flush()

    return buffer.passages


class PassageChunker:
    """
    Chunks a document's tokens into indexed passages.

    Usage:
        chunker = PassageChunker()
        passages = chunker.chunk("32016R0679", tokens)
    """

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()

    def chunk(self, document_id: str, tokens: list[ContentToken]) -> list[Passage]:
        texts = build_chunks(tokens, self.config.min_size, self.config.max_size)
        passages = [
            Passage(document_id=document_id, index=i, text=text)
            for i, text in enumerate(texts)
        ]
        if passages:
            avg = sum(len(p.text) for p in passages) // len(passages)
            logger.debug(f"{document_id}: {len(passages)} passages (avg {avg} chars)")
        return passages
