import numpy as np
import pytest

from dialogue_memory.config import EmbeddingConfig
from dialogue_memory.embedding import (
    HashingEmbedder, SentenceTransformerEmbedder, create_embedder, normalize_rows,
)


class TestHashingEmbedder:
    def test_shape_and_unit_norm(self):
        embedder = HashingEmbedder(dimension=64)
        vectors = embedder.encode(["hello world", "something else entirely"])
        assert vectors.shape == (2, 64)
        assert vectors.dtype == np.float32
        np.testing.assert_allclose(np.linalg.norm(vectors, axis=1), 1.0, rtol=1e-5)

    def test_deterministic(self):
        a = HashingEmbedder().encode(["deploy the service"])
        b = HashingEmbedder().encode(["deploy the service"])
        np.testing.assert_array_equal(a, b)

    def test_empty_text_is_zero_vector(self):
        vectors = HashingEmbedder(dimension=32).encode(["", "..."])
        assert not vectors.any()

    def test_overlap_scores_higher(self):
        embedder = HashingEmbedder()
        query, related, unrelated = embedder.encode(
            ["my cat likes fish", "the cat ate fish", "quarterly revenue grew"]
        )
        assert query @ related > query @ unrelated

    def test_case_insensitive(self):
        embedder = HashingEmbedder()
        a, b = embedder.encode(["Hello World", "hello world"])
        assert a @ b == pytest.approx(1.0, abs=1e-5)


def test_normalize_rows_leaves_zero_rows():
    matrix = np.array([[3.0, 4.0], [0.0, 0.0]], dtype=np.float32)
    result = normalize_rows(matrix)
    np.testing.assert_allclose(result[0], [0.6, 0.8])
    np.testing.assert_array_equal(result[1], [0.0, 0.0])


class TestCreateEmbedder:
    def test_hashing_default(self):
        embedder = create_embedder(EmbeddingConfig(dimension=128))
        assert isinstance(embedder, HashingEmbedder)
        assert embedder.dimension == 128

    def test_sentence_transformers_is_lazy(self):
        embedder = create_embedder(EmbeddingConfig(provider="sentence_transformers"))
        assert isinstance(embedder, SentenceTransformerEmbedder)
        assert embedder._model is None
        assert embedder.encode([]).shape == (0, 256)
