"""FastAPI application exposing search, indexing and enrichment over HTTP."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from vaultindex.analysis.enrich import analyze
from vaultindex.config import AppConfig
from vaultindex.embedding.encoder import EmbeddingConfig, EmbeddingError, EmbeddingModel
from vaultindex.index.indexer import Indexer
from vaultindex.index.search import MODE_HYBRID, Searcher
from vaultindex.index.storage import SQLiteIndexStore, StoreError
from vaultindex.ingestion.markdown_loader import VaultSource

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="vaultindex", version="0.1.0")


class SearchPayload(BaseModel):
    query: str
    mode: str = MODE_HYBRID
    limit: int = 20
    vault: Path | None = None
    db: Path | None = None


class IndexPayload(BaseModel):
    vault: Path | None = None
    db: Path | None = None


def _resolve_config(vault: Path | None, db: Path | None) -> AppConfig:
    config = AppConfig.from_env(vault_path=vault, db_path=db)
    if config.db_path is None and config.vault_path is None:
        raise HTTPException(status_code=400, detail="No vault configured")
    return config


def _existing_db(config: AppConfig) -> Path:
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise HTTPException(
            status_code=404,
            detail=f"Index not found at {resolved_db}. Index the vault first.",
        )
    return resolved_db


def _make_embedder(config: AppConfig) -> EmbeddingModel:
    return EmbeddingModel(EmbeddingConfig(api_key=config.api_key, model_name=config.model_name))


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.post("/search")
async def search_notes(payload: SearchPayload) -> Dict[str, Any]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")

    limit = max(1, min(payload.limit, 100))
    config = _resolve_config(payload.vault, payload.db)
    resolved_db = _existing_db(config)

    try:
        with SQLiteIndexStore(resolved_db) as store, _make_embedder(config) as embedder:
            response = Searcher(embedder, store).search(query, mode=payload.mode, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EmbeddingError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return response.to_dict()


def _run_index_job(config: AppConfig) -> Dict[str, Any]:
    resolved_db = config.resolve_db_path(Path.cwd())
    with SQLiteIndexStore(resolved_db) as store, _make_embedder(config) as embedder:
        indexer = Indexer(
            embedder,
            store,
            batch_size=config.batch_size,
            body_budget=config.body_budget,
        )
        stats = indexer.index(VaultSource(config.resolve_vault_path()))
    return {**stats.as_dict(), "db_path": str(resolved_db)}


@app.post("/index")
async def index_vault(payload: IndexPayload) -> Dict[str, Any]:
    config = _resolve_config(payload.vault, payload.db)
    if config.vault_path is None:
        raise HTTPException(status_code=400, detail="No vault configured")
    vault_path = config.resolve_vault_path()
    if not vault_path.is_dir():
        raise HTTPException(status_code=404, detail=f"Vault directory not found: {vault_path}")
    try:
        stats = await asyncio.to_thread(_run_index_job, config)
    except StoreError as exc:
        LOGGER.error("Indexing failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"status": "ok", "stats": stats}


@app.get("/enrich")
async def enrich_vault(vault: Path | None = None, db: Path | None = None) -> Dict[str, Any]:
    config = _resolve_config(vault, db)
    resolved_db = _existing_db(config)
    try:
        with SQLiteIndexStore(resolved_db) as store:
            report = analyze(store)
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return report.to_dict()


@app.get("/stats")
async def index_stats(vault: Path | None = None, db: Path | None = None) -> Dict[str, Any]:
    config = _resolve_config(vault, db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        return {"db_path": str(resolved_db), "note_count": 0, "embedding_count": 0}
    try:
        with SQLiteIndexStore(resolved_db) as store:
            return store.stats()
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
