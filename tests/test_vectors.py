"""Tests for embedding encoding and cosine similarity."""

from __future__ import annotations

import numpy as np
import pytest

from vaultindex.index.vectors import cosine_similarity, decode_embedding, encode_embedding


class TestEmbeddingEncoding:
    """Blob encoding used for the embedding column."""

    def test_round_trip_is_lossless(self) -> None:
        vector = np.random.default_rng(7).standard_normal(768).astype("float32")

        decoded = decode_embedding(encode_embedding(vector))

        assert decoded is not None
        assert decoded.dtype == np.float32
        np.testing.assert_array_equal(decoded, vector)

    def test_encoding_is_little_endian_float32(self) -> None:
        assert encode_embedding([1.0]) == b"\x00\x00\x80\x3f"
        assert len(encode_embedding(np.ones(768))) == 768 * 4

    def test_empty_blob_is_no_embedding(self) -> None:
        assert decode_embedding(b"") is None
        assert decode_embedding(None) is None

    def test_truncated_blob_is_no_embedding(self) -> None:
        blob = encode_embedding([0.5, 0.25])[:-1]
        assert decode_embedding(blob) is None

    def test_wrong_dimension_is_no_embedding(self) -> None:
        blob = encode_embedding(np.ones(10))
        assert decode_embedding(blob, dimension=768) is None
        assert decode_embedding(blob, dimension=10) is not None


class TestCosineSimilarity:
    """cosine_similarity edge cases."""

    def test_identical_vectors(self) -> None:
        vector = np.array([0.3, -1.2, 4.0], dtype="float32")
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_orthogonal_vectors(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self) -> None:
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_length_mismatch_is_exactly_zero(self) -> None:
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_zero_norm_is_exactly_zero(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
        assert cosine_similarity([1.0, 0.0], [0.0, 0.0]) == 0.0

    def test_empty_vectors_are_exactly_zero(self) -> None:
        assert cosine_similarity([], []) == 0.0
