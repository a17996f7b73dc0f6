from pocketbook_highlights.config import Layout
from pocketbook_highlights.markdown import (
    PLUGIN_TAG,
    build_flat_highlight_block,
    build_highlight_document,
    build_metadata_document,
    parse_front_matter,
    quote_lines,
    sanitise_title,
)
from pocketbook_highlights.models import Book, BookMetadata, Highlight, Quotation


def make_book(**kwargs) -> Book:
    base = {
        "id": "b1",
        "fast_hash": "h1",
        "title": "My Book",
        "metadata": BookMetadata(authors="Jane Doe", isbn="978-0", year=2001),
        "collections": "fiction,favourites",
        "created_at": "2023-05-01T10:00:00Z",
        "read_status": "read",
    }
    base.update(kwargs)
    return Book(**base)


def test_sanitise_title_removes_reserved_characters() -> None:
    assert sanitise_title("My: Book?") == "My Book"
    assert sanitise_title("A/B\\C #1 {x} <y> $z! 'q' \"w\" @e+r`t|y=u%i&o*p.") == "ABC 1 x y z q w ertyuiop"


def test_sanitise_title_is_idempotent() -> None:
    title = "Dr. Strange: Who? & Why!"
    once = sanitise_title(title)
    assert sanitise_title(once) == once


def test_quote_lines_continues_block_quote() -> None:
    assert quote_lines("one\ntwo\nthree") == "one\n> two\n> three"
    assert quote_lines(None) == ""


def test_highlight_document_front_matter_and_body() -> None:
    highlight = Highlight(
        uuid="u1",
        quotation=Quotation(text="First line\nSecond line", begin="epubcfi(/6/2)", end="epubcfi(/6/2:9)", updated=100),
        note="Remember this",
        color="yellow",
    )

    document = build_highlight_document(make_book(), highlight, 3)
    metadata, body = parse_front_matter(document)

    assert document.startswith("---\n")
    assert metadata == {
        "id": "u1",
        "book_id": "b1",
        "book_fast_hash": "h1",
        "color": "yellow",
        "note": "Remember this",
        "text": "First line\nSecond line",
        "pointer": {"begin": "epubcfi(/6/2)", "end": "epubcfi(/6/2:9)"},
        "updated": 100,
        "type": "highlight",
        "plugin": PLUGIN_TAG,
        "sort_order": 3,
    }
    assert body == "\n> [!quote]\n> First line\n> Second line\n\n> [!note]\n> Remember this\n"


def test_highlight_document_defaults_for_missing_fields() -> None:
    document = build_highlight_document(make_book(), Highlight(uuid="u9"), 1)
    metadata, body = parse_front_matter(document)

    assert metadata["color"] == "unknown"
    assert metadata["note"] == ""
    assert metadata["text"] == ""
    assert metadata["pointer"] == {"begin": "", "end": ""}
    assert metadata["updated"] is None
    assert body == "\n> [!quote]\n> \n\n"


def test_highlight_document_is_deterministic() -> None:
    highlight = Highlight(uuid="u1", quotation=Quotation(text="A", begin="epubcfi(/6/2)", updated=100))
    assert build_highlight_document(make_book(), highlight, 1) == build_highlight_document(make_book(), highlight, 1)


def test_flat_highlight_block_has_no_front_matter() -> None:
    highlight = Highlight(uuid="u1", quotation=Quotation(text="A"), note="line1\nline2")

    assert build_flat_highlight_block(highlight) == "> [!quote]\n> A\n\n> [!note]\n> line1\n> line2\n"
    assert build_flat_highlight_block(Highlight(uuid="u2", quotation=Quotation(text="B"))) == "> [!quote]\n> B\n\n"


def test_nested_metadata_document_embeds_highlight_query() -> None:
    document = build_metadata_document(make_book(), Layout.NESTED, "PocketBook/My Book")
    metadata, body = parse_front_matter(document)

    assert list(metadata) == [
        "title",
        "authors",
        "isbn",
        "year",
        "id",
        "fast_hash",
        "collections",
        "uploaded_at",
        "read_status",
        "type",
        "plugin",
    ]
    assert metadata["id"] == "b1"
    assert metadata["collections"] == ["fiction", "favourites"]
    assert metadata["type"] == "book"
    assert body.startswith("```dataviewjs\n")
    assert 'FROM "PocketBook/My Book/highlights"' in body
    assert 'WHERE book_id="b1" AND type = "highlight"' in body
    assert "SORT sort_order" in body
    assert body.endswith("```\n")


def test_flat_metadata_document_links_authors() -> None:
    document = build_metadata_document(make_book(collections=None), Layout.FLAT)
    metadata, body = parse_front_matter(document)

    assert metadata["collections"] == [""]
    assert body == "Authors: [[Jane Doe]]\n"
