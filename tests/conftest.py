"""Shared fixtures for vaultindex tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable
from unittest.mock import Mock

import numpy as np
import pytest

from vaultindex.embedding.encoder import EMBEDDING_DIMENSION
from vaultindex.index.storage import SQLiteIndexStore


@pytest.fixture
def axis_vector() -> Callable[..., np.ndarray]:
    """Build a 768-dim float32 vector with the given axis weights."""

    def _build(*weights: tuple[int, float]) -> np.ndarray:
        vector = np.zeros(EMBEDDING_DIMENSION, dtype="float32")
        for axis, value in weights:
            vector[axis] = value
        return vector

    return _build


@pytest.fixture
def store(tmp_path: Path):
    """A fresh index store in a temporary directory."""
    index_store = SQLiteIndexStore(tmp_path / "index" / "search.db")
    yield index_store
    index_store.close()


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def write_note(vault: Path) -> Callable[..., Path]:
    """Write a note into the vault with a fixed modification time."""

    def _write(rel_path: str, content: str, mtime: int = 1_700_000_000) -> Path:
        path = vault / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def fake_embedder() -> Mock:
    """Embedder stand-in returning a distinct unit vector per text."""
    embedder = Mock()
    embedder.is_available.return_value = True

    def _embed_batch(texts):
        vectors = []
        for text in texts:
            vector = np.zeros(EMBEDDING_DIMENSION, dtype="float32")
            vector[sum(map(ord, text)) % EMBEDDING_DIMENSION] = 1.0
            vectors.append(vector)
        return vectors

    embedder.embed_batch.side_effect = _embed_batch
    return embedder
