"""Markdown rendering for books and highlights."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from .config import Layout
from .models import Book, Highlight

PLUGIN_TAG = "pocketbook-cloud-highlights-importer"
FRONT_MATTER_DELIMITER = "---"

UNSAFE_TITLE_CHARS = re.compile(r"[.#%&{}\\<>*?/$!'\":@+`|=]")


def sanitise_title(value: str) -> str:
    """Strip characters that Obsidian does not accept in file and folder names."""

    return UNSAFE_TITLE_CHARS.sub("", value)


def quote_lines(text: Optional[str]) -> str:
    """Continue every line of ``text`` inside the surrounding block quote."""

    return (text or "").replace("\n", "\n> ")


def render_callout(kind: str, text: Optional[str]) -> str:
    return f"> [!{kind}]\n> {quote_lines(text)}\n"


def render_front_matter(metadata: Dict[str, Any]) -> str:
    dumped = yaml.safe_dump(
        metadata,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=2**31 - 1,
    )
    return f"{FRONT_MATTER_DELIMITER}\n{dumped}{FRONT_MATTER_DELIMITER}\n"


def parse_front_matter(text: str) -> tuple[dict, str]:
    """Split ``text`` into its front-matter mapping and the remaining body.

    The sync itself only writes documents; this reads them back (used by the
    tests and by callers inspecting an existing vault).
    """

    if not text.startswith(FRONT_MATTER_DELIMITER + "\n"):
        return {}, text
    end_index = text.find(f"\n{FRONT_MATTER_DELIMITER}\n", len(FRONT_MATTER_DELIMITER))
    if end_index == -1:
        return {}, text
    metadata = yaml.safe_load(text[len(FRONT_MATTER_DELIMITER) + 1 : end_index + 1]) or {}
    body = text[end_index + len(FRONT_MATTER_DELIMITER) + 2 :]
    return metadata, body


def _highlight_body(highlight: Highlight) -> str:
    body = render_callout("quote", highlight.text) + "\n"
    if highlight.note:
        body += render_callout("note", highlight.note)
    return body


def _dataview_query(folder: str, book: Book) -> str:
    return (
        "```dataviewjs\n"
        "dv.header(2, dv.current().title)\n"
        "const queryResult = await dv.query(`\n"
        "  TABLE WITHOUT ID text, note\n"
        f'  FROM "{folder}/highlights"\n'
        f'  WHERE book_id="{book.id}" AND type = "highlight" and plugin = "{PLUGIN_TAG}"\n'
        "  SORT sort_order\n"
        "`);\n\n"
        r'const result = queryResult.value.values.map(line => "> [!quote]\n> " + line[0].replace(/\n/g, "\n> ")'
        r' + (line[1] ? "\n\n> [!note]\n> " + line[1].replace(/\n/g, "\n> ") : ""))'
        "\n\n"
        "dv.list(result)\n"
        "```\n"
    )


@dataclass(frozen=True)
class MetadataDocument:
    """The per-book document: book front-matter plus a layout specific body."""

    book: Book
    layout: Layout = Layout.NESTED
    folder: str = ""

    def front_matter(self) -> Dict[str, Any]:
        book = self.book
        return {
            "title": book.title,
            "authors": book.metadata.authors,
            "isbn": book.metadata.isbn,
            "year": book.metadata.year,
            "id": book.id,
            "fast_hash": book.fast_hash,
            "collections": (book.collections or "").split(","),
            "uploaded_at": book.created_at,
            "read_status": book.read_status,
            "type": "book",
            "plugin": PLUGIN_TAG,
        }

    def body(self) -> str:
        if self.layout is Layout.FLAT:
            return f"Authors: [[{self.book.metadata.authors}]]\n"
        return _dataview_query(self.folder, self.book)

    def render(self) -> str:
        return render_front_matter(self.front_matter()) + self.body()


@dataclass(frozen=True)
class HighlightDocument:
    """One highlight with its own front-matter (nested layout)."""

    book: Book
    highlight: Highlight
    sort_order: int

    def front_matter(self) -> Dict[str, Any]:
        highlight = self.highlight
        return {
            "id": highlight.uuid,
            "book_id": self.book.id,
            "book_fast_hash": self.book.fast_hash,
            "color": highlight.color or "unknown",
            "note": highlight.note or "",
            "text": highlight.text,
            "pointer": {
                "begin": highlight.begin or "",
                "end": highlight.end or "",
            },
            "updated": highlight.updated,
            "type": "highlight",
            "plugin": PLUGIN_TAG,
            "sort_order": self.sort_order,
        }

    def body(self) -> str:
        return "\n" + _highlight_body(self.highlight)

    def render(self) -> str:
        return render_front_matter(self.front_matter()) + self.body()


@dataclass(frozen=True)
class FlatHighlightBlock:
    """A highlight block appended to the per-book document (flat layout)."""

    highlight: Highlight

    def body(self) -> str:
        return _highlight_body(self.highlight)

    def render(self) -> str:
        return self.body()


def build_metadata_document(book: Book, layout: Layout = Layout.NESTED, folder: str = "") -> str:
    return MetadataDocument(book, layout, folder).render()


def build_highlight_document(book: Book, highlight: Highlight, sort_order: int) -> str:
    return HighlightDocument(book, highlight, sort_order).render()


def build_flat_highlight_block(highlight: Highlight) -> str:
    return FlatHighlightBlock(highlight).render()
