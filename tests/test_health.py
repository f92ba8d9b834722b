"""Tests for the vault health report."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from vaultindex.analysis.health import (
    HealthReport,
    VaultStats,
    add_missing_frontmatter,
    build_health_report,
    calculate_health_score,
)
from vaultindex.ingestion.markdown_loader import VaultSource
from vaultindex.models import DocumentRecord

NOW = 1_700_000_000 + 10 * 86400


class TestHealthScore:
    def test_perfect(self) -> None:
        assert calculate_health_score(HealthReport()) == 100

    def test_penalties(self) -> None:
        report = HealthReport(
            stale_notes=[object()] * 3,
            broken_links=[object()] * 2,
            empty_notes=["e.md"],
            no_frontmatter=["n.md"],
        )
        assert calculate_health_score(report) == 100 - 3 - 4 - 5 - 3

    def test_caps_and_floor(self) -> None:
        report = HealthReport(stale_notes=[object()] * 50, broken_links=[object()] * 50)
        assert calculate_health_score(report) == 60

        report.empty_notes = ["x"] * 30
        assert calculate_health_score(report) == 0

    def test_coverage_penalty(self) -> None:
        report = HealthReport(stats=VaultStats(total_notes=4, indexed_notes=3))
        assert calculate_health_score(report) == 75


class TestBuildHealthReport:
    def test_report_contents(self, vault: Path, write_note) -> None:
        write_note("fresh.md", "---\ntitle: Fresh\n---\nSee [[old]] and [[Missing#part]].\n", mtime=NOW - 86400)
        write_note("old.md", "---\n---\ncontent\n", mtime=NOW - 40 * 86400)
        write_note("blank.md", "---\ntags: x\n---\n   \n", mtime=NOW)
        write_note("bare.md", "no frontmatter here [[sub/deep]]\n", mtime=NOW)
        write_note("sub/deep.md", "---\n---\n" + "x" * (11 * 1024), mtime=NOW)

        report = build_health_report(VaultSource(vault), stale_days=30, now=NOW)

        assert report.stats.total_notes == 5
        assert [s.path for s in report.stale_notes] == ["old.md"]
        assert report.stale_notes[0].days_ago == 40
        assert [(b.source, b.target) for b in report.broken_links] == [("fresh.md", "Missing#part")]
        assert report.empty_notes == ["blank.md"]
        assert [n.path for n in report.large_notes] == ["sub/deep.md"]
        assert report.no_frontmatter == ["bare.md"]
        assert 0 <= report.health_score < 100

    def test_store_counts(self, vault: Path, write_note, store) -> None:
        write_note("a.md", "---\n---\na\n", mtime=NOW)
        write_note("b.md", "---\n---\nb\n", mtime=NOW)
        vector = np.zeros(768, dtype="float32")
        vector[0] = 1.0
        store.upsert_record(DocumentRecord(path="a.md", body="a", mod_time=NOW, embedding=vector))

        report = build_health_report(VaultSource(vault), store, now=NOW)

        assert report.stats.indexed_notes == 1
        assert report.stats.with_embeddings == 1
        assert report.health_score == 50

    def test_as_dict(self, vault: Path, write_note) -> None:
        write_note("a.md", "---\n---\na\n", mtime=NOW)

        data = build_health_report(VaultSource(vault), now=NOW).as_dict()

        assert data["stats"]["total_notes"] == 1
        assert data["health_score"] == 100


def test_add_missing_frontmatter(vault: Path, write_note) -> None:
    write_note("bare.md", "body\n")

    fixed = add_missing_frontmatter(VaultSource(vault), ["bare.md", "ghost.md"])

    assert fixed == 1
    assert (vault / "bare.md").read_text(encoding="utf-8") == "---\n---\nbody\n"
