"""Embedding backends for long-term memory retrieval.

Two backends share the :class:`Embedder` protocol:

- ``HashingEmbedder``: deterministic feature-hashing over word tokens and
  character trigrams. No model download, stable across processes.
- ``SentenceTransformerEmbedder``: a sentence-transformers model, loaded
  lazily on first use.

Both return L2-normalised float32 rows, so cosine similarity is a dot product.
"""

from __future__ import annotations

import hashlib
import re
from typing import Protocol, Sequence

import numpy as np
from loguru import logger

from .config import EmbeddingConfig

_WORD_PATTERN = re.compile(r"\w+", re.UNICODE)


class Embedder(Protocol):
    """Turns texts into normalised embedding vectors."""

    @property
    def dimension(self) -> int: ...

    def encode(self, texts: Sequence[str]) -> np.ndarray:
        """Encode texts into a ``(len(texts), dimension)`` float32 array."""
        ...


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """L2-normalise each row. All-zero rows stay zero."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


class HashingEmbedder:
    """Feature-hashing bag-of-words embedder.

    Each word token and each character trigram of each word is hashed with
    blake2b into one of ``dimension`` buckets with a sign bit. Words weigh
    more than trigrams, so exact vocabulary overlap dominates while trigrams
    give partial credit for inflections ("deploy" vs "deployment").
    """

    WORD_WEIGHT = 1.0
    TRIGRAM_WEIGHT = 0.5

    def __init__(self, dimension: int = 256):
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "little")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self._dimension, sign

    def _features(self, text: str) -> list[tuple[str, float]]:
        features: list[tuple[str, float]] = []
        for word in _WORD_PATTERN.findall(text.lower()):
            features.append((f"w:{word}", self.WORD_WEIGHT))
            padded = f"<{word}>"
            for i in range(len(padded) - 2):
                features.append((f"t:{padded[i:i + 3]}", self.TRIGRAM_WEIGHT))
        return features

    def encode(self, texts: Sequence[str]) -> np.ndarray:
        matrix = np.zeros((len(texts), self._dimension), dtype=np.float32)
        for row, text in enumerate(texts):
            for feature, weight in self._features(text):
                index, sign = self._bucket(feature)
                matrix[row, index] += sign * weight
        return normalize_rows(matrix)


class SentenceTransformerEmbedder:
    """Embedder backed by sentence-transformers.

    Features:
    - Lazy model loading (only when first embedding is requested)
    - Batch encoding for efficiency
    """

    def __init__(self, config: EmbeddingConfig | None = None):
        """Initialize embedding service.

        Args:
            config: Embedding configuration
        """
        self._config = config or EmbeddingConfig(provider="sentence_transformers")
        self._model = None
        self._dimension = self._config.dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _ensure_model(self) -> None:
        """Lazy-load the sentence-transformers model."""
        if self._model is not None:
            return

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ImportError(
                "sentence-transformers is required for SentenceTransformerEmbedder. "
                "Install with: pip install 'dialogue-memory[embeddings]'"
            ) from e

        logger.info(f"Loading embedding model: {self._config.model}")
        self._model = SentenceTransformer(
            self._config.model,
            trust_remote_code=self._config.trust_remote_code,
        )
        self._dimension = self._model.get_sentence_embedding_dimension()
        logger.info(f"Embedding model loaded: dim={self._dimension}")

    def encode(self, texts: Sequence[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, self._dimension), dtype=np.float32)

        self._ensure_model()

        embeddings = self._model.encode(
            list(texts), batch_size=32, show_progress_bar=False,
            normalize_embeddings=True,
        )
        return np.asarray(embeddings, dtype=np.float32)


def create_embedder(config: EmbeddingConfig | None = None) -> Embedder:
    """Build the embedder selected by ``config.provider``."""
    config = config or EmbeddingConfig()
    if config.provider == "sentence_transformers":
        return SentenceTransformerEmbedder(config)
    return HashingEmbedder(dimension=config.dimension)
