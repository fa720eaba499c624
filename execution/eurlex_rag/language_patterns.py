"""
Multilingual Pattern Definitions for the EUR-Lex RAG

All regex patterns, prompt templates, and fixed answer texts organized by
language. Modules import from here instead of defining patterns inline.
"""

import re

# =============================================================================
# Heading Detection (extractor)
# =============================================================================

# Localized structural keywords that open a heading line (case-insensitive prefix)
HEADING_KEYWORDS = {
    "en": ["Article", "Art.", "Section", "Chapter", "Annex", "Title"],
    "ro": ["Articolul", "Capitolul", "Secțiunea", "Secţiunea", "Anexa", "Titlul"],
}

HEADING_KEYWORD_REGEX = re.compile(
    r"^(?:"
    + "|".join(
        re.escape(keyword)
        for lang in ("en", "ro")
        for keyword in HEADING_KEYWORDS[lang]
    )
    + r")",
    re.IGNORECASE,
)

# Leading roman numeral followed by an optional dot and whitespace ("IV. ", "II ")
ROMAN_NUMERAL_PREFIX_REGEX = re.compile(r"^[IVXLC]+\.?\s")

HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

# =============================================================================
# Sentence Boundaries (chunker)
# =============================================================================

# Sentence-ending punctuation, whitespace, then an uppercase or diacritic
# capital. Requiring the capital keeps "art. 5" and "lit. (a)" intact.
SENTENCE_BOUNDARY_REGEX = re.compile(
    r"(?<=[.!?])\s+(?=[A-ZÀ-ÖØ-ÞĂÂÎȘȚŞŢ])"
)

# =============================================================================
# Status Markers (fetcher)
# =============================================================================

NO_LONGER_IN_FORCE_MARKERS = [
    re.compile(r"No\s+longer\s+in\s+force", re.IGNORECASE),
    re.compile(r"Ceased\s+to\s+be\s+in\s+force", re.IGNORECASE),
    re.compile(r"Nu\s+mai\s+este\s+în\s+vigoare", re.IGNORECASE),
    re.compile(r"Nu\s+mai\s+este\s+in\s+vigoare", re.IGNORECASE),
    re.compile(r"abrogare\s+implicită", re.IGNORECASE),
    re.compile(r"abrogat(ă)?", re.IGNORECASE),
    re.compile(r"End\s+of\s+validity", re.IGNORECASE),
]

END_OF_VALIDITY_REGEX = re.compile(
    r"Date of end of validity:\s*([0-9]{2}/[0-9]{2}/[0-9]{4})", re.IGNORECASE
)

# =============================================================================
# CELEX Identifiers (discovery)
# =============================================================================

# Sector 3 legislation: regulations (R) and directives (L)
CELEX_LEGISLATION_REGEX = re.compile(r"^3[0-9]{4}[RL]")
CELEX_YEAR_REGEX = re.compile(r"^3(\d{4})[A-Z]")

# =============================================================================
# Fixed Answer Texts
# =============================================================================

LABELS = {
    "ro": {
        "insufficient_information": "Nu știu. Nu am suficiente informații din contextul recuperat.",
        "question": "Întrebare:",
        "context": "Context:",
        "language_name": "Romanian",
    },
    "en": {
        "insufficient_information": "I don't know. The retrieved context does not contain enough information.",
        "question": "Question:",
        "context": "Context:",
        "language_name": "English",
    },
}

# =============================================================================
# LLM Prompt Templates
# =============================================================================

LLM_PROMPTS = {
    "ro": {
        "rag_system": (
            "Answer STRICTLY from the provided context. "
            "If the context is insufficient, say you don't know. "
            "Cite using the format [#CELEX:chunkId]. "
            "Answer in Romanian."
        ),
    },
    "en": {
        "rag_system": (
            "Answer STRICTLY from the provided context. "
            "If the context is insufficient, say you don't know. "
            "Cite using the format [#CELEX:chunkId]. "
            "Answer in English."
        ),
    },
}
