"""Utility helpers for working with vault files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

NOTE_SUFFIX = ".md"


def _is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts[:-1])


def iter_markdown_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield markdown paths from input paths, descending into directories.

    Files under hidden directories (``.obsidian``, ``.git``, ...) are skipped.
    """
    for item in inputs:
        if item.is_dir():
            for child in sorted(item.rglob(f"*{NOTE_SUFFIX}")):
                if child.is_file() and not _is_hidden(child, item):
                    yield child
        elif item.is_file() and item.suffix.lower() == NOTE_SUFFIX:
            yield item
