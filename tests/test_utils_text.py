"""Tests for text utility functions."""

from __future__ import annotations

import pytest

from vaultindex.utils.text import build_search_text, join_list, note_name, strip_fragment


class TestNoteName:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("Foo.md", "Foo"),
            ("projects/Foo.md", "Foo"),
            ("projects\\Foo.md", "Foo"),
            ("Foo.MD", "Foo"),
            ("archive.tar", "archive.tar"),
        ],
    )
    def test_note_name(self, path: str, expected: str) -> None:
        assert note_name(path) == expected


class TestStripFragment:
    def test_heading_fragment(self) -> None:
        assert strip_fragment("Foo#section") == "Foo"

    def test_block_fragment(self) -> None:
        assert strip_fragment("Foo#^abc123") == "Foo"

    def test_no_fragment(self) -> None:
        assert strip_fragment(" Foo ") == "Foo"

    def test_fragment_only(self) -> None:
        assert strip_fragment("#local") == ""


def test_join_list_skips_empty_items() -> None:
    assert join_list(["a", "", "b"]) == "a, b"
    assert join_list([]) == ""


class TestBuildSearchText:
    def test_order(self) -> None:
        assert build_search_text("T", "x, y", "H1\nH2", "body") == "T\nx, y\nH1\nH2\nbody"

    def test_empty_fields_skipped(self) -> None:
        assert build_search_text("T", "", "", "body") == "T\nbody"

    def test_only_body_is_truncated(self) -> None:
        title = "t" * 20
        text = build_search_text(title, "", "", "b" * 100, body_budget=10)
        assert text == title + "\n" + "b" * 10
