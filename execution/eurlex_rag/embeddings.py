"""
Embedding Service for the EUR-Lex RAG

Provides embeddings via OpenAI (text-embedding-3-small) or a deterministic
hash-based generator for offline runs and tests.
Supports batching, caching, and different input types (documents vs queries).

Architecture:
    BaseEmbeddingService  -- shared caching, batching, embed_documents, embed_query
        OpenAIEmbeddingService    -- OpenAI embeddings API provider
    HashEmbeddingService  -- deterministic pseudo-random vectors (no caching needed)
"""

import os
import json
import time
import hashlib
import logging
from typing import Optional, Union
from dataclasses import dataclass
from pathlib import Path

import openai
from openai import OpenAI

from .exceptions import EmbedError, EmbedQuotaExceeded, EmbedTransient
from .language_config import LanguageConfig

logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = 1536


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    provider: str = "openai"  # "openai" or "hash"
    model: str = "text-embedding-3-small"
    dimensions: int = DEFAULT_DIMENSIONS
    batch_size: int = 100
    max_tokens_per_batch: int = 200000  # API max: 300K per request
    chars_per_token: float = 4.0
    cache_dir: Optional[str] = None
    use_cache: bool = True

    # Retries for timeouts, connection errors, 5xx, and plain rate limits
    max_retries: int = 4
    retry_base_delay: float = 1.0


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Provides shared functionality:
    - Batched embedding with progress logging
    - Memory and file-based caching
    - Cache key generation
    - Document vs query input type distinction

    Subclasses implement:
    - _init_client(): Initialize the provider-specific API client
    - _request_embeddings(): Call the provider for a list of uncached texts
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self._client = None
        self._cache = {}

        if self.config.cache_dir:
            self._cache_path = Path(self.config.cache_dir)
            self._cache_path.mkdir(parents=True, exist_ok=True)
        else:
            self._cache_path = None

        self._init_client()

    def _init_client(self):
        raise NotImplementedError("Subclasses must implement _init_client()")

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        raise NotImplementedError("Subclasses must implement _request_embeddings()")

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """Split texts into batches respecting both item count and token limits."""
        batches = []
        current_batch = []
        current_tokens = 0
        cpt = self.config.chars_per_token

        for text in texts:
            est_tokens = len(text) / cpt
            if current_batch and (
                len(current_batch) >= self.config.batch_size
                or current_tokens + est_tokens > self.config.max_tokens_per_batch
            ):
                batches.append(current_batch)
                current_batch = []
                current_tokens = 0
            current_batch.append(text)
            current_tokens += est_tokens

        if current_batch:
            batches.append(current_batch)

        return batches

    def _require_client(self) -> None:
        if not self._client:
            raise EmbedError(
                f"{self._provider_name} client not initialized. "
                f"Check {self._env_var_name}."
            )

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for passages.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, one per input text

        Raises:
            EmbedQuotaExceeded: provider quota exhausted
            EmbedTransient: transient failure persisted through retries
        """
        if not texts:
            return []

        self._require_client()
        batches = self._create_batches(texts)

        logger.info(
            f"Embedding {len(texts)} passages in {len(batches)} batches"
            f" with {self._provider_name}"
        )

        embeddings = []
        for batch_idx, batch in enumerate(batches):
            embeddings.extend(self._embed_batch(batch, input_type=self._doc_input_type))

            if (batch_idx + 1) % 10 == 0:
                logger.info(f"Processed batch {batch_idx + 1}/{len(batches)}")

        return embeddings

    def embed_query(self, query: str) -> list[float]:
        """Generate the embedding for a search query."""
        self._require_client()

        cache_key = self._get_cache_key(query, self._query_input_type)
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        result = self._embed_batch([query], input_type=self._query_input_type)
        return result[0] if result else []

    def embed(self, text: str) -> list[float]:
        """Embed a single passage text."""
        result = self.embed_documents([text])
        return result[0] if result else []

    def _embed_batch(
        self,
        texts: list[str],
        input_type: str = "document"
    ) -> list[list[float]]:
        """Embed a batch of texts, serving what it can from the cache."""
        results = []
        uncached_texts = []
        uncached_indices = []

        for i, text in enumerate(texts):
            cache_key = self._get_cache_key(text, input_type)
            cached = self._get_cached(cache_key)
            if cached is not None:
                results.append((i, cached))
            else:
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            vectors = self._request_embeddings(uncached_texts, input_type)
            for idx, embedding in zip(uncached_indices, vectors):
                self._set_cached(self._get_cache_key(texts[idx], input_type), embedding)
                results.append((idx, embedding))

        results.sort(key=lambda x: x[0])
        return [emb for _, emb in results]

    def _get_cache_key(self, text: str, input_type: str) -> str:
        content = f"{self.config.model}:{input_type}:{text}"
        return hashlib.sha256(content.encode()).hexdigest()[:32]

    def _get_cached(self, key: str) -> Optional[list[float]]:
        if not self.config.use_cache:
            return None

        if key in self._cache:
            return self._cache[key]

        if self._cache_path:
            cache_file = self._cache_path / f"{key}.json"
            if cache_file.exists():
                try:
                    with open(cache_file) as f:
                        embedding = json.load(f)
                        self._cache[key] = embedding
                        return embedding
                except (OSError, ValueError) as e:
                    logger.debug(f"Failed to read embedding cache file {cache_file}: {e}")

        return None

    def _set_cached(self, key: str, embedding: list[float]) -> None:
        if not self.config.use_cache:
            return

        self._cache[key] = embedding

        if self._cache_path:
            cache_file = self._cache_path / f"{key}.json"
            try:
                with open(cache_file, 'w') as f:
                    json.dump(embedding, f)
            except OSError as e:
                logger.warning(f"Failed to cache embedding: {e}")

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self.config.dimensions


def is_quota_error(error: Exception) -> bool:
    """True for a 429 whose message or error code mentions quota."""
    if getattr(error, "status_code", None) != 429:
        return False
    code = str(getattr(error, "code", "") or "")
    return "quota" in str(error).lower() or "quota" in code.lower()


class OpenAIEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using the OpenAI embeddings API.

    text-embedding-3-small provides 1536-dimensional embeddings; the same
    input type is used for passages and queries.
    """

    _provider_name = "OpenAI"
    _env_var_name = "OPENAI_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _init_client(self):
        api_key = os.getenv("OPENAI_API_KEY")

        if not api_key:
            logger.warning(
                "OPENAI_API_KEY not found. Embeddings will fail. "
                "Set the environment variable or use EMBEDDING_PROVIDER=hash."
            )
            return

        # Retries are handled here so quota errors are never retried
        self._client = OpenAI(api_key=api_key, max_retries=0)
        logger.info(f"OpenAI client initialized with model {self.config.model}")

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        attempts = self.config.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                response = self._client.embeddings.create(
                    model=self.config.model,
                    input=texts,
                )
                ordered = sorted(response.data, key=lambda item: item.index)
                return [item.embedding for item in ordered]

            except openai.RateLimitError as e:
                if is_quota_error(e):
                    raise EmbedQuotaExceeded(
                        "OpenAI quota exceeded. Configure billing for your API key "
                        "or use --no-embed to dry-run."
                    ) from e
                last_error = e
            except (openai.APITimeoutError, openai.APIConnectionError, openai.InternalServerError) as e:
                last_error = e
            except openai.OpenAIError as e:
                logger.error(f"{self._provider_name} embedding failed: {e}")
                raise EmbedError(f"{self._provider_name} embedding failed: {e}") from e

            logger.warning(
                f"{self._provider_name} embedding attempt {attempt + 1}/{attempts} failed: {last_error}"
            )
            if attempt < attempts - 1:
                time.sleep(self.config.retry_base_delay * (2 ** attempt))

        raise EmbedTransient(
            f"{self._provider_name} embedding failed after {attempts} attempts: {last_error}"
        ) from last_error


class HashEmbeddingService:
    """
    Deterministic pseudo-random embeddings for offline seeding and tests.

    The text is hashed with 32-bit FNV-1a over its UTF-16 code units; the
    hash seeds a 31-bit linear congruential generator whose outputs are
    scaled to [-1, 1]. Identical texts always map to identical vectors.
    """

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS):
        self._dimensions = dimensions

    @staticmethod
    def fnv1a(text: str) -> int:
        h = 2166136261
        data = text.encode("utf-16-le")
        for i in range(0, len(data), 2):
            h ^= data[i] | (data[i + 1] << 8)
            h = (h * 16777619) & 0xFFFFFFFF
        return h

    def vector_for(self, text: str) -> list[float]:
        x = self.fnv1a(text) or 123456789
        vector = []
        for _ in range(self._dimensions):
            # Double-precision product, then the low 31 bits of the rounded value
            x = int(1103515245.0 * x + 12345.0) & 0x7FFFFFFF
            vector.append((x / 0x7FFFFFFF) * 2 - 1)
        return vector

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.vector_for(text) for text in texts]

    def embed_query(self, query: str) -> list[float]:
        return self.vector_for(query)

    def embed(self, text: str) -> list[float]:
        return self.vector_for(text)

    @property
    def dimensions(self) -> int:
        return self._dimensions


def get_embedding_service(
    provider: Optional[str] = None,
    language_config: Optional[LanguageConfig] = None,
    cache_dir: Optional[str] = None,
) -> Union[OpenAIEmbeddingService, HashEmbeddingService]:
    """
    Factory function to get the configured embedding service.

    Args:
        provider: "openai" or "hash"; defaults to EMBEDDING_PROVIDER, then "openai"
        language_config: Optional LanguageConfig supplying model and dimensions
        cache_dir: Optional directory for the file embedding cache

    Returns:
        Configured embedding service
    """
    provider = (provider or os.getenv("EMBEDDING_PROVIDER") or "openai").lower()
    language_config = language_config or LanguageConfig.for_language("ro")

    if provider == "hash":
        return HashEmbeddingService(dimensions=language_config.embedding_dimensions)

    if provider != "openai":
        raise ValueError(f"Unknown embedding provider: {provider}")

    config = EmbeddingConfig(
        provider="openai",
        model=language_config.embedding_model,
        dimensions=language_config.embedding_dimensions,
        cache_dir=cache_dir,
    )
    return OpenAIEmbeddingService(config)
