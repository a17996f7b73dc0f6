"""Data models for PocketBook Cloud highlight synchronization."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


def _nested_text(value: Any, key: str) -> Optional[str]:
    # The API wraps notes and colours in small objects ({"text": ...}, {"value": ...}).
    if isinstance(value, Mapping):
        value = value.get(key)
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class BookMetadata:
    """Bibliographic details attached to a book."""

    authors: str = ""
    isbn: Optional[str] = None
    year: Optional[Any] = None

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> "BookMetadata":
        data = data or {}
        authors = data.get("authors") or ""
        if isinstance(authors, (list, tuple)):
            authors = ", ".join(str(author) for author in authors)
        return cls(authors=str(authors), isbn=data.get("isbn"), year=data.get("year"))


@dataclass(frozen=True)
class Book:
    """A book snapshot as returned by the remote account."""

    id: str
    fast_hash: str
    title: str
    metadata: BookMetadata = field(default_factory=BookMetadata)
    collections: Optional[str] = None
    created_at: Optional[str] = None
    read_status: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Book":
        return cls(
            id=str(data.get("id", "")),
            fast_hash=str(data.get("fast_hash", "")),
            title=str(data.get("title") or "Untitled"),
            metadata=BookMetadata.from_payload(data.get("metadata")),
            collections=data.get("collections"),
            created_at=data.get("created_at"),
            read_status=data.get("read_status"),
        )


@dataclass(frozen=True)
class Quotation:
    """The highlighted passage and its position in the book."""

    text: Optional[str] = None
    begin: Optional[str] = None
    end: Optional[str] = None
    updated: Optional[Any] = None

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> Optional["Quotation"]:
        if not isinstance(data, Mapping):
            return None
        return cls(
            text=data.get("text"),
            begin=data.get("begin"),
            end=data.get("end"),
            updated=data.get("updated"),
        )


@dataclass(frozen=True)
class Highlight:
    """A single highlight (and optional note) inside a book."""

    uuid: str
    quotation: Optional[Quotation] = None
    note: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Highlight":
        return cls(
            uuid=str(data.get("uuid", "")),
            quotation=Quotation.from_payload(data.get("quotation")),
            note=_nested_text(data.get("note"), "text"),
            color=_nested_text(data.get("color"), "value"),
        )

    @property
    def text(self) -> str:
        if self.quotation is None:
            return ""
        return self.quotation.text or ""

    @property
    def begin(self) -> Optional[str]:
        return self.quotation.begin if self.quotation else None

    @property
    def end(self) -> Optional[str]:
        return self.quotation.end if self.quotation else None

    @property
    def updated(self) -> Optional[Any]:
        return self.quotation.updated if self.quotation else None
