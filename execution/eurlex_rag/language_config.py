"""
Language Configuration for the EUR-Lex RAG

Provides per-language settings: the answer language, the EUR-Lex URL
language code used for fetching, the fallback language variant, and the
embedding/LLM model defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional


# Supported languages with their EUR-Lex codes and fallbacks
SUPPORTED_LANGUAGES = {
    "ro": {
        "name": "Romanian",
        "eurlex_code": "RO",
        "fallback": "en",
    },
    "en": {
        "name": "English",
        "eurlex_code": "EN",
        "fallback": None,
    },
}

DEFAULT_LANGUAGE = "ro"


@dataclass
class LanguageConfig:
    """Language and model configuration for ingestion and answering."""
    language: str = DEFAULT_LANGUAGE
    eurlex_code: str = "RO"
    fallback_language: Optional[str] = "en"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    llm_model: str = "gpt-4o"

    @classmethod
    def for_language(cls, language: str) -> "LanguageConfig":
        """
        Factory method returning defaults for a given language.

        Model names honour OPENAI_EMBED_MODEL / OPENAI_CHAT_MODEL.

        Args:
            language: ISO 639-1 code ("ro" or "en"); unknown codes fall back to Romanian

        Returns:
            LanguageConfig with appropriate defaults
        """
        language = (language or DEFAULT_LANGUAGE).lower()
        if language not in SUPPORTED_LANGUAGES:
            language = DEFAULT_LANGUAGE

        info = SUPPORTED_LANGUAGES[language]
        return cls(
            language=language,
            eurlex_code=info["eurlex_code"],
            fallback_language=info["fallback"],
            embedding_model=os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small"),
            embedding_dimensions=1536,
            llm_model=os.getenv("OPENAI_CHAT_MODEL", "gpt-4o"),
        )
