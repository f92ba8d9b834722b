"""Embedding blob encoding and vector similarity helpers."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

LOGGER = logging.getLogger(__name__)

# Embeddings are persisted as little-endian float32, whatever the host order.
_BLOB_DTYPE = np.dtype("<f4")


def encode_embedding(vector: Sequence[float] | np.ndarray) -> bytes:
    """Serialize a vector to a fixed-width little-endian float32 blob."""
    return np.asarray(vector, dtype=_BLOB_DTYPE).tobytes()


def decode_embedding(blob: bytes | None, *, dimension: int | None = None) -> Optional[np.ndarray]:
    """Deserialize a blob written by :func:`encode_embedding`.

    Returns ``None`` for empty or malformed data instead of raising, so one
    corrupt row never blocks keyword search over the rest of the index.
    """
    if not blob or len(blob) % _BLOB_DTYPE.itemsize != 0:
        return None
    vector = np.frombuffer(blob, dtype=_BLOB_DTYPE).astype("float32")
    if dimension is not None and vector.shape[0] != dimension:
        LOGGER.debug("Discarding embedding of %d dims (expected %d)", vector.shape[0], dimension)
        return None
    return vector


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity in [-1, 1].

    Mismatched lengths, empty vectors and zero-norm vectors all score
    exactly 0.0.
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / (norm_a * norm_b)
