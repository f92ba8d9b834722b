"""Core vaultindex data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from vaultindex.utils.text import LIST_SEPARATOR


@dataclass(slots=True)
class NoteInfo:
    """Minimal metadata describing a note file inside a vault."""

    path: str
    name: str
    mod_time: int
    size: int


@dataclass(slots=True)
class Heading:
    level: int
    text: str


@dataclass(slots=True)
class ParsedNote:
    """A markdown note split into frontmatter, body and structure."""

    frontmatter: Dict[str, Any]
    body: str
    headings: List[Heading] = field(default_factory=list)
    wikilinks: List[str] = field(default_factory=list)
    has_frontmatter: bool = False


@dataclass(slots=True)
class DocumentRecord:
    """One row of the index, keyed by vault-relative path.

    ``tags`` and ``wikilinks`` are stored joined with ``", "``;
    ``headings`` is joined with newlines.
    """

    path: str
    title: str = ""
    tags: str = ""
    headings: str = ""
    wikilinks: str = ""
    body: str = ""
    mod_time: int = 0
    embedding: Optional[np.ndarray] = None

    @property
    def tag_list(self) -> List[str]:
        return split_joined(self.tags)

    @property
    def wikilink_list(self) -> List[str]:
        return split_joined(self.wikilinks)


@dataclass(slots=True)
class SearchHit:
    path: str
    title: str
    score: float
    snippet: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "title": self.title,
            "score": self.score,
            "snippet": self.snippet,
        }


@dataclass(slots=True)
class LinkSuggestion:
    source: str
    target: str
    similarity: float


@dataclass(slots=True)
class TagSuggestion:
    path: str
    tags: List[str]


def split_joined(value: str, sep: str = LIST_SEPARATOR) -> List[str]:
    """Split a joined column value back into its non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(sep) if item.strip()]
