"""Text helpers shared by the indexer and the analyzers."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable

FRAGMENT_DELIMITER = "#"
LIST_SEPARATOR = ", "


def note_name(path: str) -> str:
    """Filename-derived name of a note: ``projects/Foo.md`` -> ``Foo``."""
    name = PurePosixPath(path.replace("\\", "/")).name
    if name.lower().endswith(".md"):
        name = name[:-3]
    return name


def strip_fragment(link: str) -> str:
    """Drop a ``#heading`` or ``#^block`` suffix from a wikilink target."""
    index = link.find(FRAGMENT_DELIMITER)
    if index >= 0:
        link = link[:index]
    return link.strip()


def join_list(items: Iterable[str]) -> str:
    return LIST_SEPARATOR.join(item for item in items if item)


def build_search_text(title: str, tags: str, headings: str, body: str, *, body_budget: int = 8000) -> str:
    """Combine note fields into the text sent for embedding.

    Order is title, tags, headings, body; only the body is truncated, to
    keep requests under the provider's size limit.
    """
    parts = [part for part in (title, tags, headings) if part]
    if body:
        parts.append(body[:body_budget])
    return "\n".join(parts)
