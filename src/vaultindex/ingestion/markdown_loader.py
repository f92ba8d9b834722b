"""Markdown note loading for Obsidian-style vaults.

Frontmatter is parsed with python-frontmatter; headings and ``[[wikilinks]]``
are pulled out of the body with regular expressions.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List

import frontmatter
import yaml

from vaultindex.models import Heading, NoteInfo, ParsedNote
from vaultindex.utils.files import NOTE_SUFFIX, iter_markdown_paths
from vaultindex.utils.text import join_list

LOGGER = logging.getLogger(__name__)

WIKILINK_RE = re.compile(r"\[\[([^\]|]+)(?:\|[^\]]+)?\]\]")
HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)


def has_frontmatter_block(content: str) -> bool:
    return content.startswith("---\n") or content.startswith("---\r\n")


def extract_headings(body: str) -> List[Heading]:
    return [
        Heading(level=len(match.group(1)), text=match.group(2).strip())
        for match in HEADING_RE.finditer(body)
    ]


def extract_wikilinks(body: str) -> List[str]:
    """Wikilink targets in order of first appearance, aliases dropped."""
    seen: set[str] = set()
    links: List[str] = []
    for match in WIKILINK_RE.finditer(body):
        target = match.group(1).strip()
        if target and target not in seen:
            seen.add(target)
            links.append(target)
    return links


def parse_note(content: str) -> ParsedNote:
    """Split markdown into frontmatter, body, headings and wikilinks.

    Malformed YAML frontmatter is treated as part of the body.
    """
    metadata: Dict[str, Any] = {}
    body = content
    found = False
    if has_frontmatter_block(content):
        try:
            post = frontmatter.loads(content)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            LOGGER.debug("Ignoring malformed frontmatter: %s", exc)
        else:
            metadata = dict(post.metadata)
            body = post.content
            found = True

    return ParsedNote(
        frontmatter=metadata,
        body=body,
        headings=extract_headings(body),
        wikilinks=extract_wikilinks(body),
        has_frontmatter=found,
    )


def extract_title(note: ParsedNote, fallback: str) -> str:
    """Frontmatter title, else the first level-1 heading, else ``fallback``."""
    title = note.frontmatter.get("title")
    if title is not None and str(title).strip():
        return str(title).strip()
    for heading in note.headings:
        if heading.level == 1:
            return heading.text
    return fallback


def extract_tags(note: ParsedNote) -> str:
    """Frontmatter tags joined with ``", "``; accepts a list or a scalar."""
    value = note.frontmatter.get("tags")
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return join_list(str(item).strip() for item in value if item is not None)
    return str(value).strip()


def extract_heading_texts(note: ParsedNote) -> str:
    return "\n".join(heading.text for heading in note.headings)


class VaultSource:
    """Read-side access to the markdown notes of one vault directory."""

    def __init__(self, vault_path: Path) -> None:
        self.vault_path = Path(vault_path)

    def resolve(self, note_path: str) -> Path:
        if not note_path.endswith(NOTE_SUFFIX):
            note_path += NOTE_SUFFIX
        return self.vault_path / note_path

    def list_notes(self) -> List[NoteInfo]:
        """Every markdown note in the vault, hidden directories excluded."""
        if not self.vault_path.is_dir():
            raise FileNotFoundError(f"Vault directory not found: {self.vault_path}")

        notes: List[NoteInfo] = []
        for path in iter_markdown_paths([self.vault_path]):
            try:
                stat = path.stat()
            except OSError as exc:
                LOGGER.warning("Skipping unreadable note %s: %s", path, exc)
                continue
            notes.append(
                NoteInfo(
                    path=path.relative_to(self.vault_path).as_posix(),
                    name=path.stem,
                    mod_time=int(stat.st_mtime),
                    size=stat.st_size,
                )
            )
        return notes

    def read_text(self, note_path: str) -> str:
        return self.resolve(note_path).read_text(encoding="utf-8")

    def read_note(self, note_path: str) -> ParsedNote:
        return parse_note(self.read_text(note_path))

    def write_text(self, note_path: str, content: str) -> None:
        self.resolve(note_path).write_text(content, encoding="utf-8")

    def append_to_note(self, note_path: str, text: str) -> None:
        """Append ``text`` on its own line to an existing note."""
        path = self.resolve(note_path)
        if not path.is_file():
            raise FileNotFoundError(f"Note not found: {note_path}")
        existing = path.read_text(encoding="utf-8")
        if existing and not existing.endswith("\n"):
            text = "\n" + text
        if not text.endswith("\n"):
            text += "\n"
        with path.open("a", encoding="utf-8") as handle:
            handle.write(text)
