"""
Citation Tags and Context Formatting

Every retrieved passage is cited as #<CELEX>:<passage index>; in prompts and
answers the tag appears in brackets, [#<CELEX>:<index>]. The tag is a pure
function of the passage identity, so a passage is always cited the same way.
"""

import re
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CITATION_TAG_REGEX = re.compile(r"\[#([^\s:\]]+):(\d+)\]")


def format_citation(document_id: str, passage_index: int) -> str:
    """Citation tag for a passage, e.g. "#32016R0679:3"."""
    return f"#{document_id}:{passage_index}"


def parse_citation(tag: str) -> tuple[str, int]:
    """Inverse of format_citation: "#32016R0679:3" -> ("32016R0679", 3)."""
    document_id, _, index = tag.lstrip("#").rpartition(":")
    if not document_id or not index.isdigit():
        raise ValueError(f"Not a citation tag: {tag!r}")
    return document_id, int(index)


def extract_cited_tags(text: str) -> list[str]:
    """Bracketed citation tags in generated text, unbracketed, in order of first use."""
    seen = []
    for match in CITATION_TAG_REGEX.finditer(text or ""):
        tag = format_citation(match.group(1), int(match.group(2)))
        if tag not in seen:
            seen.append(tag)
    return seen


@dataclass
class Citation:
    """A retrieved passage referenced by an answer."""
    tag: str
    score: float

    def to_dict(self) -> dict:
        return {"tag": self.tag, "score": self.score}


def citations_from_results(results) -> list[Citation]:
    """One Citation per retrieved passage, in retrieval order."""
    return [
        Citation(tag=format_citation(r.document_id, r.passage_index), score=r.score)
        for r in results
    ]


def build_context(results) -> str:
    """
    Concatenate retrieved passages for the generation prompt.

    Each block is the passage's citation tag on its own line followed by the
    passage text; blocks are separated by a blank line.
    """
    blocks = [
        f"[{format_citation(r.document_id, r.passage_index)}]\n{r.content}"
        for r in results
    ]
    return "\n\n".join(blocks)
