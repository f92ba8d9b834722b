"""Tests for the FastAPI web application."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from fastapi.testclient import TestClient

from vaultindex.config import API_KEY_ENV, VAULT_ENV
from vaultindex.index.storage import SQLiteIndexStore
from vaultindex.models import DocumentRecord
from vaultindex.web.app import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(VAULT_ENV, raising=False)
    monkeypatch.delenv(API_KEY_ENV, raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "search.db"
    vector = np.zeros(768, dtype="float32")
    vector[0] = 1.0
    with SQLiteIndexStore(path) as store:
        store.upsert_record(
            DocumentRecord(path="go.md", title="Go", body="Golang error handling", mod_time=1, embedding=vector)
        )
        store.upsert_record(
            DocumentRecord(path="py.md", title="Py", body="Python error handling", mod_time=1, embedding=vector)
        )
    return path


class TestSearchEndpoint:
    """Tests for POST /search endpoint."""

    def test_search_empty_query(self) -> None:
        response = client.post("/search", json={"query": "   "})
        assert response.status_code == 400
        assert "Empty query" in response.json()["detail"]

    def test_search_no_vault(self) -> None:
        response = client.post("/search", json={"query": "x"})
        assert response.status_code == 400

    def test_search_missing_index(self, tmp_path: Path) -> None:
        response = client.post("/search", json={"query": "x", "db": str(tmp_path / "none.db")})
        assert response.status_code == 404

    def test_keyword_search(self, db_path: Path) -> None:
        response = client.post(
            "/search", json={"query": "error handling", "mode": "keyword", "db": str(db_path)}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "keyword"
        assert sorted(hit["path"] for hit in data["results"]) == ["go.md", "py.md"]

    def test_hybrid_falls_back_without_key(self, db_path: Path) -> None:
        response = client.post("/search", json={"query": "python", "db": str(db_path)})

        data = response.json()
        assert data["mode"] == "keyword"
        assert data["notice"]
        assert [hit["path"] for hit in data["results"]] == ["py.md"]

    def test_semantic_without_key(self, db_path: Path) -> None:
        response = client.post("/search", json={"query": "x", "mode": "semantic", "db": str(db_path)})
        assert response.status_code == 503

    def test_unknown_mode(self, db_path: Path) -> None:
        response = client.post("/search", json={"query": "x", "mode": "fuzzy", "db": str(db_path)})
        assert response.status_code == 400


class TestIndexEndpoint:
    def test_index_vault(self, vault: Path, write_note, tmp_path: Path) -> None:
        write_note("a.md", "# A\nalpha\n")
        db = tmp_path / "idx" / "search.db"

        response = client.post("/index", json={"vault": str(vault), "db": str(db)})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["stats"]["indexed"] == 1
        assert data["stats"]["db_path"] == str(db)

    def test_index_requires_vault(self, tmp_path: Path) -> None:
        response = client.post("/index", json={"db": str(tmp_path / "x.db")})
        assert response.status_code == 400

    def test_index_missing_vault(self, tmp_path: Path) -> None:
        response = client.post("/index", json={"vault": str(tmp_path / "missing")})
        assert response.status_code == 404


class TestEnrichEndpoint:
    def test_enrich(self, db_path: Path) -> None:
        response = client.get("/enrich", params={"db": str(db_path)})

        assert response.status_code == 200
        data = response.json()
        assert [(s["from"], s["to"]) for s in data["link_suggestions"]] == [("go.md", "py.md")]
        assert data["summary"]["orphans_found"] == 2

    def test_enrich_missing_index(self, tmp_path: Path) -> None:
        response = client.get("/enrich", params={"db": str(tmp_path / "none.db")})
        assert response.status_code == 404


class TestStatsEndpoint:
    def test_stats(self, db_path: Path) -> None:
        response = client.get("/stats", params={"db": str(db_path)})

        assert response.status_code == 200
        assert response.json()["note_count"] == 2
        assert response.json()["embedding_count"] == 2

    def test_stats_missing_index(self, tmp_path: Path) -> None:
        response = client.get("/stats", params={"db": str(tmp_path / "none.db")})

        assert response.status_code == 200
        assert response.json()["note_count"] == 0
