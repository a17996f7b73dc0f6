"""Tests for the PocketBook Cloud source using mocked HTTP sessions."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List

import pytest
import requests

from pocketbook_highlights.fetchers import PocketbookCloudSource, SourceFetchError
from pocketbook_highlights.models import Book, Highlight


class FakeResponse:
    def __init__(self, payload: Any = None, *, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON payload provided")
        return self._payload


class FakeSession:
    def __init__(self, responses: Iterable[FakeResponse | Exception]) -> None:
        self.calls: List[tuple[str, Dict[str, Any], Dict[str, str]]] = []
        self._responses = list(responses)

    def get(self, url: str, *, params=None, headers=None, timeout=None) -> FakeResponse:
        self.calls.append((url, params, headers))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_source(session: FakeSession, **kwargs) -> PocketbookCloudSource:
    return PocketbookCloudSource(
        "token-123",
        base_url="https://cloud.example/api/v1.0/",
        session=session,  # type: ignore[arg-type]
        **kwargs,
    )


def test_get_books_paginates_and_parses() -> None:
    page_one = FakeResponse(
        {
            "total": 3,
            "items": [
                {
                    "id": "b1",
                    "fast_hash": "h1",
                    "title": "Book One",
                    "metadata": {"authors": "Author One", "isbn": "123", "year": 1999},
                    "collections": "fiction",
                    "created_at": "2023-01-01T00:00:00Z",
                    "read_status": "read",
                },
                {"id": "b2", "fast_hash": "h2", "title": "Book Two"},
            ],
        }
    )
    page_two = FakeResponse({"total": 3, "items": [{"id": "b3", "fast_hash": "h3", "title": "Book Three"}]})
    session = FakeSession([page_one, page_two])

    books = asyncio.run(make_source(session, page_size=2).get_books())

    assert [book.title for book in books] == ["Book One", "Book Two", "Book Three"]
    assert isinstance(books[0], Book)
    assert books[0].metadata.authors == "Author One"
    assert books[1].metadata.authors == ""
    assert [call[0] for call in session.calls] == ["https://cloud.example/api/v1.0/books"] * 2
    assert session.calls[0][1] == {"limit": 2, "offset": 0}
    assert session.calls[1][1] == {"limit": 2, "offset": 2}
    assert session.calls[0][2]["Authorization"] == "Bearer token-123"


def test_get_highlight_ids_and_highlight() -> None:
    session = FakeSession(
        [
            FakeResponse([{"uuid": "u1"}, {"uuid": "u2"}, {"something": "else"}]),
            FakeResponse(
                {
                    "uuid": "u1",
                    "quotation": {"text": "Quoted", "begin": "epubcfi(/6/2)", "end": "epubcfi(/6/2:5)", "updated": 100},
                    "note": {"text": "A note"},
                    "color": {"value": "yellow"},
                }
            ),
        ]
    )
    source = make_source(session)

    ids = asyncio.run(source.get_highlight_ids("h1"))
    highlight = asyncio.run(source.get_highlight("u1", "h1"))

    assert ids == ["u1", "u2"]
    assert session.calls[0][0] == "https://cloud.example/api/v1.0/notes"
    assert session.calls[0][1] == {"fast_hash": "h1"}
    assert session.calls[1][0] == "https://cloud.example/api/v1.0/notes/u1"
    assert isinstance(highlight, Highlight)
    assert highlight.text == "Quoted"
    assert highlight.begin == "epubcfi(/6/2)"
    assert highlight.updated == 100
    assert highlight.note == "A note"
    assert highlight.color == "yellow"


def test_get_highlight_tolerates_missing_fields() -> None:
    session = FakeSession([FakeResponse({})])

    highlight = asyncio.run(make_source(session).get_highlight("u7", "h1"))

    assert highlight.uuid == "u7"
    assert highlight.quotation is None
    assert highlight.note is None
    assert highlight.color is None


def test_http_error_raises_source_fetch_error() -> None:
    session = FakeSession([FakeResponse(status_code=500)])

    with pytest.raises(SourceFetchError):
        asyncio.run(make_source(session).get_books())


def test_transport_error_raises_source_fetch_error() -> None:
    session = FakeSession([requests.ConnectionError("connection refused")])

    with pytest.raises(SourceFetchError):
        asyncio.run(make_source(session).get_highlight_ids("h1"))


def test_invalid_json_raises_source_fetch_error() -> None:
    session = FakeSession([FakeResponse(None)])

    with pytest.raises(SourceFetchError):
        asyncio.run(make_source(session).get_highlight("u1", "h1"))
