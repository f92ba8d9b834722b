"""SQLite + FTS5 note index with brute-force vector search."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set

import numpy as np

from vaultindex.embedding.encoder import EMBEDDING_DIMENSION
from vaultindex.index.ranking import reciprocal_rank_fusion, sort_hits
from vaultindex.index.vectors import decode_embedding, encode_embedding
from vaultindex.models import DocumentRecord, SearchHit

LOGGER = logging.getLogger(__name__)

SNIPPET_OPEN = "»"
SNIPPET_CLOSE = "«"
SNIPPET_ELLIPSIS = "…"
SNIPPET_TOKENS = 32
# Position of ``body`` in the FTS table, used by snippet().
_FTS_BODY_COLUMN = 4
# Messages FTS5 uses when it cannot parse a MATCH expression.
_FTS_QUERY_ERRORS = ("syntax error", "no such column", "unterminated string", "unknown special query")


class StoreError(Exception):
    """The index database could not be opened, created or queried."""


class SQLiteIndexStore:
    """Persistence layer for note records and their full-text mirror.

    ``notes`` is the primary table. ``notes_fts`` is a standalone FTS5 table
    sharing rowids with ``notes``; every mutating method writes both inside
    a single transaction so readers never see one without the other.
    """

    def __init__(self, db_path: Path, *, dimension: int = EMBEDDING_DIMENSION) -> None:
        self.db_path = Path(db_path)
        self.dimension = dimension
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Failed to open index database {self.db_path}: {exc}") from exc

        self._conn.row_factory = sqlite3.Row
        try:
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._ensure_schema()
        except sqlite3.Error as exc:
            self._conn.close()
            raise StoreError(f"Failed to initialise index database {self.db_path}: {exc}") from exc

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteIndexStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notes (
                    path      TEXT PRIMARY KEY,
                    title     TEXT NOT NULL DEFAULT '',
                    tags      TEXT NOT NULL DEFAULT '',
                    headings  TEXT NOT NULL DEFAULT '',
                    wikilinks TEXT NOT NULL DEFAULT '',
                    body      TEXT NOT NULL DEFAULT '',
                    mod_time  INTEGER NOT NULL DEFAULT 0,
                    embedding BLOB
                )
                """
            )
            conn.execute(
                """
                CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
                    path UNINDEXED,
                    title,
                    tags,
                    headings,
                    body
                )
                """
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert_record(self, record: DocumentRecord) -> None:
        """Insert or replace a record and its full-text entry atomically."""
        blob: Optional[bytes] = None
        if record.embedding is not None:
            vector = np.asarray(record.embedding, dtype="float32")
            if vector.shape != (self.dimension,):
                raise ValueError(
                    f"Embedding for {record.path} has shape {vector.shape}, "
                    f"expected ({self.dimension},)"
                )
            blob = encode_embedding(vector)

        try:
            with self.transaction() as conn:
                self._delete_fts_entry(conn, record.path)
                conn.execute(
                    """
                    INSERT INTO notes (path, title, tags, headings, wikilinks, body, mod_time, embedding)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(path) DO UPDATE SET
                        title     = excluded.title,
                        tags      = excluded.tags,
                        headings  = excluded.headings,
                        wikilinks = excluded.wikilinks,
                        body      = excluded.body,
                        mod_time  = excluded.mod_time,
                        embedding = excluded.embedding
                    """,
                    (
                        record.path,
                        record.title,
                        record.tags,
                        record.headings,
                        record.wikilinks,
                        record.body,
                        int(record.mod_time),
                        sqlite3.Binary(blob) if blob is not None else None,
                    ),
                )
                rowid = conn.execute(
                    "SELECT rowid FROM notes WHERE path = ?", (record.path,)
                ).fetchone()[0]
                conn.execute(
                    """
                    INSERT INTO notes_fts (rowid, path, title, tags, headings, body)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (rowid, record.path, record.title, record.tags, record.headings, record.body),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to upsert {record.path}: {exc}") from exc

    def delete_record(self, path: str) -> bool:
        """Remove a record and its full-text entry. Missing paths are ignored."""
        try:
            with self.transaction() as conn:
                self._delete_fts_entry(conn, path)
                cursor = conn.execute("DELETE FROM notes WHERE path = ?", (path,))
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to delete {path}: {exc}") from exc
        return cursor.rowcount > 0

    @staticmethod
    def _delete_fts_entry(conn: sqlite3.Connection, path: str) -> None:
        existing = conn.execute("SELECT rowid FROM notes WHERE path = ?", (path,)).fetchone()
        if existing is not None:
            conn.execute("DELETE FROM notes_fts WHERE rowid = ?", (existing[0],))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Index query failed: {exc}") from exc

    def get_mod_time(self, path: str) -> int:
        """Stored modification time for ``path``, or 0 when it is not indexed."""
        rows = self._query("SELECT mod_time FROM notes WHERE path = ?", (path,))
        return int(rows[0]["mod_time"]) if rows else 0

    def all_paths(self) -> Set[str]:
        return {row["path"] for row in self._query("SELECT path FROM notes")}

    def count(self) -> int:
        return int(self._query("SELECT COUNT(*) FROM notes")[0][0])

    def embedding_count(self) -> int:
        return int(self._query("SELECT COUNT(*) FROM notes WHERE embedding IS NOT NULL")[0][0])

    def get_record(self, path: str) -> Optional[DocumentRecord]:
        rows = self._query("SELECT * FROM notes WHERE path = ?", (path,))
        return self._row_to_record(rows[0]) if rows else None

    def all_records(self, *, with_embedding: bool = False) -> List[DocumentRecord]:
        """Every record ordered by path; optionally only those with a usable embedding."""
        rows = self._query("SELECT * FROM notes ORDER BY path")
        records = [self._row_to_record(row) for row in rows]
        if with_embedding:
            records = [record for record in records if record.embedding is not None]
        return records

    def stats(self) -> Dict[str, Any]:
        return {
            "db_path": str(self.db_path),
            "note_count": self.count(),
            "embedding_count": self.embedding_count(),
        }

    def _row_to_record(self, row: sqlite3.Row) -> DocumentRecord:
        return DocumentRecord(
            path=row["path"],
            title=row["title"],
            tags=row["tags"],
            headings=row["headings"],
            wikilinks=row["wikilinks"],
            body=row["body"],
            mod_time=int(row["mod_time"]),
            embedding=decode_embedding(row["embedding"], dimension=self.dimension),
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_lexical(self, query: str, limit: int) -> List[SearchHit]:
        """FTS5 keyword search; larger scores are better."""
        if not query.strip() or limit <= 0:
            return []

        sql = f"""
            SELECT n.path AS path,
                   n.title AS title,
                   bm25(notes_fts) AS rank,
                   snippet(notes_fts, {_FTS_BODY_COLUMN}, '{SNIPPET_OPEN}', '{SNIPPET_CLOSE}',
                           '{SNIPPET_ELLIPSIS}', {SNIPPET_TOKENS}) AS snippet
            FROM notes_fts
            JOIN notes n ON n.rowid = notes_fts.rowid
            WHERE notes_fts MATCH ?
            ORDER BY rank
            LIMIT ?
        """
        try:
            rows = self._conn.execute(sql, (query, limit)).fetchall()
        except sqlite3.OperationalError as exc:
            if not any(marker in str(exc) for marker in _FTS_QUERY_ERRORS):
                raise StoreError(f"FTS5 search failed for {query!r}: {exc}") from exc
            LOGGER.debug("Query %r is not valid FTS5 syntax, retrying as literal terms", query)
            rows = self._query(sql, (_literal_fts_query(query), limit))
        except sqlite3.Error as exc:
            raise StoreError(f"FTS5 search failed for {query!r}: {exc}") from exc

        # bm25() is negative with lower meaning better; flip it.
        return [
            SearchHit(
                path=row["path"],
                title=row["title"],
                score=-float(row["rank"]),
                snippet=row["snippet"] or "",
            )
            for row in rows
        ]

    def search_vector(self, query_vector: Sequence[float] | np.ndarray, limit: int) -> List[SearchHit]:
        """Linear cosine-similarity scan over every record with an embedding."""
        if limit <= 0:
            return []
        query = np.asarray(query_vector, dtype=np.float64).ravel()
        rows = self._query("SELECT path, title, embedding FROM notes WHERE embedding IS NOT NULL")

        paths: List[str] = []
        titles: List[str] = []
        vectors: List[np.ndarray] = []
        for row in rows:
            vector = decode_embedding(row["embedding"], dimension=self.dimension)
            if vector is None:
                continue
            paths.append(row["path"])
            titles.append(row["title"])
            vectors.append(vector)

        if not vectors or query.size != self.dimension:
            return []
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0:
            return []

        matrix = np.vstack(vectors).astype(np.float64)
        norms = np.linalg.norm(matrix, axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = (matrix @ query) / (norms * query_norm)
        scores[norms == 0] = 0.0

        hits = [
            SearchHit(path=paths[idx], title=titles[idx], score=float(scores[idx]))
            for idx in range(len(paths))
            if scores[idx] > 0
        ]
        return sort_hits(hits)[:limit]

    def search_hybrid(
        self,
        query: str,
        query_vector: Sequence[float] | np.ndarray,
        limit: int,
    ) -> List[SearchHit]:
        """Reciprocal Rank Fusion over keyword and semantic pools of ``limit * 2``."""
        pool = limit * 2
        lexical = self.search_lexical(query, pool)
        semantic = self.search_vector(query_vector, pool)
        return reciprocal_rank_fusion(lexical, semantic, limit=limit)


def _literal_fts_query(query: str) -> str:
    """Quote each whitespace-separated term so FTS5 treats it literally."""
    terms = [term.replace('"', '""') for term in query.split()]
    return " ".join(f'"{term}"' for term in terms if term)
