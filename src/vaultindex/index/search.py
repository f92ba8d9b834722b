"""Keyword, semantic and hybrid search over the note index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from vaultindex.embedding.encoder import EmbeddingError, EmbeddingModel
from vaultindex.index.storage import SQLiteIndexStore
from vaultindex.models import SearchHit

LOGGER = logging.getLogger(__name__)

MODE_KEYWORD = "keyword"
MODE_SEMANTIC = "semantic"
MODE_HYBRID = "hybrid"
SEARCH_MODES = (MODE_KEYWORD, MODE_SEMANTIC, MODE_HYBRID)


@dataclass(slots=True)
class SearchResponse:
    """Search outcome; ``mode`` is the mode actually used after any fallback."""

    query: str
    mode: str
    results: List[SearchHit] = field(default_factory=list)
    notice: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "mode": self.mode,
            "results": [hit.to_dict() for hit in self.results],
            "notice": self.notice,
        }


class Searcher:
    """High-level API to query the index store."""

    def __init__(self, embedder: EmbeddingModel, store: SQLiteIndexStore) -> None:
        self.embedder = embedder
        self.store = store

    def search(self, query: str, *, mode: str = MODE_HYBRID, limit: int = 20) -> SearchResponse:
        if mode not in SEARCH_MODES:
            raise ValueError(
                f"Unknown search mode: {mode} (use {', '.join(SEARCH_MODES)})"
            )
        if self.store.count() == 0:
            return SearchResponse(query=query, mode=mode)

        if mode == MODE_KEYWORD:
            return self._keyword(query, limit)

        if mode == MODE_SEMANTIC:
            if not self.embedder.is_available():
                raise EmbeddingError("Semantic search requires a Gemini API key")
            query_vector = self.embedder.embed_query(query)
            return SearchResponse(
                query=query,
                mode=mode,
                results=self.store.search_vector(query_vector, limit),
            )

        if not self.embedder.is_available():
            return self._keyword(query, limit, notice="No Gemini API key, using keyword search only")
        try:
            query_vector = self.embedder.embed_query(query)
        except EmbeddingError as exc:
            LOGGER.warning("Query embedding failed, falling back to keyword search: %s", exc)
            return self._keyword(
                query, limit, notice=f"Embedding failed, falling back to keyword search: {exc}"
            )
        return SearchResponse(
            query=query,
            mode=mode,
            results=self.store.search_hybrid(query, query_vector, limit),
        )

    def _keyword(self, query: str, limit: int, *, notice: str = "") -> SearchResponse:
        return SearchResponse(
            query=query,
            mode=MODE_KEYWORD,
            results=self.store.search_lexical(query, limit),
            notice=notice,
        )
