"""Incremental vault indexing pipeline."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from vaultindex.embedding.encoder import EmbeddingError, EmbeddingModel
from vaultindex.index.storage import SQLiteIndexStore, StoreError
from vaultindex.ingestion.markdown_loader import (
    VaultSource,
    extract_heading_texts,
    extract_tags,
    extract_title,
)
from vaultindex.models import DocumentRecord, NoteInfo
from vaultindex.utils.text import build_search_text, join_list

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_BODY_BUDGET = 8000


@dataclass(slots=True)
class IndexStats:
    indexed: int = 0
    skipped: int = 0
    removed: int = 0
    errors: int = 0
    total: int = 0
    embeddings_enabled: bool = True
    failed_paths: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Indexer:
    """Keeps the index in step with the vault using modification times.

    Notes whose stored ``mod_time`` is at least the file's are skipped without
    being read. Equal timestamps count as current, so two edits within one
    timestamp tick can be missed.
    """

    def __init__(
        self,
        embedder: EmbeddingModel,
        store: SQLiteIndexStore,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        body_budget: int = DEFAULT_BODY_BUDGET,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size
        self.body_budget = body_budget

    def index(self, source: VaultSource) -> IndexStats:
        """Run one incremental pass over ``source`` and return tallies."""
        stats = IndexStats(embeddings_enabled=self.embedder.is_available())
        if not stats.embeddings_enabled:
            LOGGER.warning("Embedding API key not configured; indexing without embeddings")

        notes = source.list_notes()
        pending: List[DocumentRecord] = []
        for info in notes:
            try:
                stored = self.store.get_mod_time(info.path)
            except StoreError as exc:
                LOGGER.error("Failed to read stored state for %s: %s", info.path, exc)
                self._record_error(stats, info.path)
                continue

            if stored >= info.mod_time:
                stats.skipped += 1
                continue

            try:
                pending.append(self._build_record(source, info))
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.error("Failed to read %s: %s", info.path, exc)
                self._record_error(stats, info.path)

        if pending and stats.embeddings_enabled:
            self._embed_pending(pending, stats)

        for record in pending:
            try:
                self.store.upsert_record(record)
            except StoreError as exc:
                LOGGER.error("Failed to index %s: %s", record.path, exc)
                self._record_error(stats, record.path)
                continue
            stats.indexed += 1

        stats.removed = self._remove_missing(notes)
        stats.total = self.store.count()
        LOGGER.info(
            "Index updated: %d indexed, %d skipped, %d removed (%d total, %d errors)",
            stats.indexed,
            stats.skipped,
            stats.removed,
            stats.total,
            stats.errors,
        )
        return stats

    def _build_record(self, source: VaultSource, info: NoteInfo) -> DocumentRecord:
        note = source.read_note(info.path)
        return DocumentRecord(
            path=info.path,
            title=extract_title(note, info.name),
            tags=extract_tags(note),
            headings=extract_heading_texts(note),
            wikilinks=join_list(note.wikilinks),
            body=note.body,
            mod_time=info.mod_time,
        )

    def _embed_pending(self, pending: List[DocumentRecord], stats: IndexStats) -> None:
        LOGGER.info("Generating embeddings for %d notes", len(pending))
        texts = [
            build_search_text(
                record.title,
                record.tags,
                record.headings,
                record.body,
                body_budget=self.body_budget,
            )
            for record in pending
        ]

        for start in range(0, len(texts), self.batch_size):
            batch = pending[start : start + self.batch_size]
            try:
                vectors = self.embedder.embed_batch(texts[start : start + self.batch_size])
            except EmbeddingError as exc:
                # The notes are still stored below, just without vectors.
                LOGGER.warning(
                    "Embedding batch %d-%d failed: %s", start, start + len(batch) - 1, exc
                )
                for record in batch:
                    self._record_error(stats, record.path)
                continue

            for record, vector in zip(batch, vectors):
                record.embedding = vector

    def _remove_missing(self, notes: List[NoteInfo]) -> int:
        vault_paths = {info.path for info in notes}
        removed = 0
        for path in sorted(self.store.all_paths() - vault_paths):
            try:
                if self.store.delete_record(path):
                    removed += 1
            except StoreError as exc:
                LOGGER.error("Failed to remove %s from the index: %s", path, exc)
        return removed

    @staticmethod
    def _record_error(stats: IndexStats, path: str) -> None:
        stats.errors += 1
        stats.failed_paths.append(path)
