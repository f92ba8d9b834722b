"""Similarity-driven enrichment: link suggestions, tag suggestions and orphans.

Everything here works from indexed records. Link and tag suggestions use the
stored embeddings with an all-pairs cosine scan, which is fine for a few
thousand notes; orphan detection only needs the stored wikilinks.
"""

from __future__ import annotations

import logging
import re
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Set

from vaultindex.index.storage import SQLiteIndexStore
from vaultindex.index.vectors import cosine_similarity
from vaultindex.ingestion.markdown_loader import VaultSource
from vaultindex.models import DocumentRecord, LinkSuggestion, TagSuggestion
from vaultindex.utils.text import note_name, strip_fragment

LOGGER = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.70
MAX_SUGGESTIONS_PER_NOTE = 5
TAG_CONSENSUS_MIN = 2
RELATED_HEADING = "## Related Notes"

Similarity = Callable[[Any, Any], float]


@dataclass(slots=True)
class EnrichReport:
    link_suggestions: List[LinkSuggestion] = field(default_factory=list)
    tag_suggestions: List[TagSuggestion] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)
    applied: int = 0

    def summary(self) -> Dict[str, int]:
        return {
            "links_found": len(self.link_suggestions),
            "tags_found": len(self.tag_suggestions),
            "orphans_found": len(self.orphans),
            "applied": self.applied,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "link_suggestions": [
                {"from": s.source, "to": s.target, "similarity": s.similarity}
                for s in self.link_suggestions
            ],
            "tag_suggestions": [{"note": s.path, "tags": s.tags} for s in self.tag_suggestions],
            "orphan_notes": self.orphans,
            "summary": self.summary(),
        }


def _link_keys(record: DocumentRecord) -> Set[str]:
    keys: Set[str] = set()
    for link in record.wikilink_list:
        target = strip_fragment(link).lower()
        if target:
            keys.add(target)
    return keys


def _name_keys(record: DocumentRecord) -> Set[str]:
    """Ways another note can refer to ``record``: its name or its path sans extension."""
    keys = {note_name(record.path).lower()}
    path = record.path.replace("\\", "/")
    if path.lower().endswith(".md"):
        path = path[:-3]
    keys.add(path.lower())
    return keys


def find_link_suggestions(
    records: Sequence[DocumentRecord],
    *,
    threshold: float = SIMILARITY_THRESHOLD,
    max_per_note: int = MAX_SUGGESTIONS_PER_NOTE,
    similarity: Similarity = cosine_similarity,
) -> List[LinkSuggestion]:
    """Suggest links between similar notes that are not linked yet.

    A pair qualifies when similarity >= ``threshold``, neither note already
    links to the other, and at least one side still has room under
    ``max_per_note``. Both sides' counters advance on acceptance.
    """
    notes = [record for record in records if record.embedding is not None]
    links = {record.path: _link_keys(record) for record in notes}
    names = {record.path: _name_keys(record) for record in notes}
    counts: Counter[str] = Counter()
    suggestions: List[LinkSuggestion] = []

    for i, left in enumerate(notes):
        for right in notes[i + 1 :]:
            if counts[left.path] >= max_per_note and counts[right.path] >= max_per_note:
                continue
            score = similarity(left.embedding, right.embedding)
            if score < threshold:
                continue
            if links[left.path] & names[right.path] or links[right.path] & names[left.path]:
                continue
            suggestions.append(LinkSuggestion(source=left.path, target=right.path, similarity=score))
            counts[left.path] += 1
            counts[right.path] += 1

    suggestions.sort(key=lambda s: -s.similarity)
    return suggestions


def find_tag_suggestions(
    records: Sequence[DocumentRecord],
    *,
    threshold: float = SIMILARITY_THRESHOLD,
    consensus: int = TAG_CONSENSUS_MIN,
    similarity: Similarity = cosine_similarity,
) -> List[TagSuggestion]:
    """Propose tags carried by at least ``consensus`` similar neighbours."""
    notes = [record for record in records if record.embedding is not None]
    tag_sets = {record.path: {tag.lower() for tag in record.tag_list} for record in notes}
    suggestions: List[TagSuggestion] = []

    for note in notes:
        existing = tag_sets[note.path]
        votes: Counter[str] = Counter()
        for other in notes:
            if other.path == note.path or not tag_sets[other.path]:
                continue
            if similarity(note.embedding, other.embedding) < threshold:
                continue
            votes.update(tag_sets[other.path] - existing)

        tags = sorted(tag for tag, count in votes.items() if count >= consensus)
        if tags:
            suggestions.append(TagSuggestion(path=note.path, tags=tags))

    suggestions.sort(key=lambda s: s.path)
    return suggestions


def find_orphans(records: Sequence[DocumentRecord]) -> List[str]:
    """Paths of notes that no other note links to, by name or by title."""
    incoming: Dict[str, Set[str]] = defaultdict(set)
    for record in records:
        for key in _link_keys(record):
            incoming[key].add(record.path)

    orphans: List[str] = []
    for record in records:
        keys = _name_keys(record)
        if record.title:
            keys.add(record.title.lower())
        linkers: Set[str] = set()
        for key in keys:
            linkers |= incoming.get(key, set())
        linkers.discard(record.path)
        if not linkers:
            orphans.append(record.path)
    return sorted(orphans)


def analyze(store: SQLiteIndexStore) -> EnrichReport:
    """Run the three enrichment passes over the current index."""
    records = store.all_records()
    embedded = [record for record in records if record.embedding is not None]
    LOGGER.info(
        "Analyzing %d notes (%d with embeddings)", len(records), len(embedded)
    )
    return EnrichReport(
        link_suggestions=find_link_suggestions(embedded),
        tag_suggestions=find_tag_suggestions(embedded),
        orphans=find_orphans(records),
    )


def _insert_related_links(content: str, lines: List[str]) -> str:
    block = "\n".join(lines)
    match = re.search(rf"^{re.escape(RELATED_HEADING)}[ \t]*$", content, re.MULTILINE)
    if match is None:
        if content and not content.endswith("\n"):
            content += "\n"
        return f"{content}\n{RELATED_HEADING}\n{block}\n"

    # Place the new links at the end of the existing section.
    next_heading = re.compile(r"^#{1,2}\s", re.MULTILINE).search(content, match.end())
    end = next_heading.start() if next_heading else len(content)
    section = content[:end].rstrip("\n")
    rest = content[end:]
    separator = "\n\n" if rest else "\n"
    return f"{section}\n{block}{separator}{rest}"


def apply_link_suggestions(source: VaultSource, suggestions: Sequence[LinkSuggestion]) -> int:
    """Write accepted suggestions into both notes' Related Notes sections.

    Best effort: a note that cannot be read or written is logged and
    skipped. Returns the number of notes changed.
    """
    targets: Dict[str, List[str]] = defaultdict(list)
    for suggestion in suggestions:
        targets[suggestion.source].append(note_name(suggestion.target))
        targets[suggestion.target].append(note_name(suggestion.source))

    applied = 0
    for path, names in targets.items():
        try:
            content = source.read_text(path)
            lines = []
            for name in dict.fromkeys(names):
                if f"[[{name}]]" not in content:
                    lines.append(f"- [[{name}]]")
            if not lines:
                continue
            source.write_text(path, _insert_related_links(content, lines))
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Could not add related links to %s: %s", path, exc)
            continue
        applied += 1
    return applied
