"""
Tests for execution/eurlex_rag/language_config.py

Covers: supported languages, LanguageConfig.for_language defaults, model
        overrides from the environment, and fallback codes.
"""

import pytest


class TestSupportedLanguages:

    def test_romanian_falls_back_to_english(self):
        from execution.eurlex_rag.language_config import SUPPORTED_LANGUAGES
        assert SUPPORTED_LANGUAGES["ro"]["eurlex_code"] == "RO"
        assert SUPPORTED_LANGUAGES["ro"]["fallback"] == "en"
        assert SUPPORTED_LANGUAGES["en"]["fallback"] is None

    def test_default_language(self):
        from execution.eurlex_rag.language_config import DEFAULT_LANGUAGE
        assert DEFAULT_LANGUAGE == "ro"


class TestLanguageConfig:

    def test_romanian(self, monkeypatch):
        from execution.eurlex_rag.language_config import LanguageConfig
        monkeypatch.delenv("OPENAI_EMBED_MODEL", raising=False)
        monkeypatch.delenv("OPENAI_CHAT_MODEL", raising=False)
        cfg = LanguageConfig.for_language("ro")
        assert cfg.language == "ro"
        assert cfg.eurlex_code == "RO"
        assert cfg.fallback_language == "en"
        assert cfg.embedding_model == "text-embedding-3-small"
        assert cfg.embedding_dimensions == 1536
        assert cfg.llm_model == "gpt-4o"

    def test_english_has_no_fallback(self):
        from execution.eurlex_rag.language_config import LanguageConfig
        cfg = LanguageConfig.for_language("EN")
        assert cfg.language == "en"
        assert cfg.fallback_language is None

    @pytest.mark.parametrize("language", ["el", "", None])
    def test_unknown_falls_back_to_romanian(self, language):
        from execution.eurlex_rag.language_config import LanguageConfig
        assert LanguageConfig.for_language(language).language == "ro"

    def test_model_overrides(self, monkeypatch):
        from execution.eurlex_rag.language_config import LanguageConfig
        monkeypatch.setenv("OPENAI_EMBED_MODEL", "text-embedding-3-large")
        monkeypatch.setenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
        cfg = LanguageConfig.for_language("ro")
        assert cfg.embedding_model == "text-embedding-3-large"
        assert cfg.llm_model == "gpt-4o-mini"
