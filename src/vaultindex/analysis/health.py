"""Vault health checks: stale, empty, large and unlinked notes."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from vaultindex.index.storage import SQLiteIndexStore
from vaultindex.ingestion.markdown_loader import VaultSource, has_frontmatter_block, parse_note
from vaultindex.utils.text import strip_fragment

LOGGER = logging.getLogger(__name__)

LARGE_NOTE_BYTES = 10 * 1024
SECONDS_PER_DAY = 86400


@dataclass(slots=True)
class VaultStats:
    total_notes: int = 0
    indexed_notes: int = 0
    with_embeddings: int = 0
    avg_size_bytes: int = 0


@dataclass(slots=True)
class StaleNote:
    path: str
    last_modified: str
    days_ago: int


@dataclass(slots=True)
class BrokenLink:
    source: str
    target: str


@dataclass(slots=True)
class LargeNote:
    path: str
    size_bytes: int


@dataclass(slots=True)
class HealthReport:
    stats: VaultStats = field(default_factory=VaultStats)
    stale_notes: List[StaleNote] = field(default_factory=list)
    broken_links: List[BrokenLink] = field(default_factory=list)
    empty_notes: List[str] = field(default_factory=list)
    large_notes: List[LargeNote] = field(default_factory=list)
    no_frontmatter: List[str] = field(default_factory=list)
    health_score: int = 100
    fixed: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_health_score(report: HealthReport) -> int:
    """0-100 score; stale and broken-link penalties are capped at 20 each."""
    score = 100
    score -= min(len(report.stale_notes), 20)
    score -= min(len(report.broken_links) * 2, 20)
    score -= len(report.empty_notes) * 5
    score -= len(report.no_frontmatter) * 3

    stats = report.stats
    if stats.total_notes > 0 and stats.indexed_notes > 0:
        coverage = stats.indexed_notes / stats.total_notes * 100
        score -= int(100 - coverage)
    return max(score, 0)


def build_health_report(
    source: VaultSource,
    store: Optional[SQLiteIndexStore] = None,
    *,
    stale_days: int = 30,
    now: Optional[float] = None,
) -> HealthReport:
    notes = source.list_notes()
    report = HealthReport()
    report.stats.total_notes = len(notes)
    if store is not None:
        report.stats.indexed_notes = store.count()
        report.stats.with_embeddings = store.embedding_count()

    known: set[str] = set()
    for info in notes:
        known.add(info.name.lower())
        known.add(info.path[:-3].lower() if info.path.lower().endswith(".md") else info.path.lower())

    current = time.time() if now is None else now
    total_size = 0
    for info in notes:
        total_size += info.size
        try:
            content = source.read_text(info.path)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Skipping unreadable note %s: %s", info.path, exc)
            continue

        days_old = int((current - info.mod_time) // SECONDS_PER_DAY)
        if days_old >= stale_days:
            report.stale_notes.append(
                StaleNote(
                    path=info.path,
                    last_modified=datetime.fromtimestamp(info.mod_time).strftime("%Y-%m-%d"),
                    days_ago=days_old,
                )
            )

        parsed = parse_note(content)
        for link in parsed.wikilinks:
            target = strip_fragment(link)
            if target and target.lower() not in known:
                report.broken_links.append(BrokenLink(source=info.path, target=link))

        if not parsed.body.strip():
            report.empty_notes.append(info.path)
        if info.size > LARGE_NOTE_BYTES:
            report.large_notes.append(LargeNote(path=info.path, size_bytes=info.size))
        if not has_frontmatter_block(content):
            report.no_frontmatter.append(info.path)

    if notes:
        report.stats.avg_size_bytes = total_size // len(notes)
    report.health_score = calculate_health_score(report)
    return report


def add_missing_frontmatter(source: VaultSource, paths: List[str]) -> int:
    """Prepend an empty frontmatter block to each note; returns how many changed."""
    fixed = 0
    for path in paths:
        try:
            content = source.read_text(path)
            source.write_text(path, "---\n---\n" + content)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Could not add frontmatter to %s: %s", path, exc)
            continue
        fixed += 1
    return fixed
