"""Fetch books and highlights from the PocketBook Cloud API."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

from ..config import DEFAULT_BASE_URL
from ..models import Book, Highlight


class SourceFetchError(RuntimeError):
    """Raised when books or highlights cannot be fetched from the remote account."""


class HighlightSource(Protocol):
    """Where books and their highlights come from."""

    async def get_books(self) -> List[Book]: ...

    async def get_highlight_ids(self, fast_hash: str) -> List[str]: ...

    async def get_highlight(self, uuid: str, fast_hash: str) -> Highlight: ...


class PocketbookCloudSource:
    """Retrieve books and highlights from a PocketBook Cloud account.

    Every request is authenticated with a bearer ``access_token``; obtaining
    and refreshing that token is left to the caller. Blocking HTTP calls are
    moved off the event loop with :func:`asyncio.to_thread`, so the highlight
    records of one book can be fetched concurrently.

    Parameters
    ----------
    access_token:
        OAuth access token of the PocketBook Cloud account.
    base_url:
        API root, without a trailing slash.
    session:
        Optional ``requests.Session`` instance. Primarily intended for tests so
        that HTTP requests can be mocked.
    page_size:
        Number of books requested per page of the book listing.
    timeout:
        Timeout in seconds for each request.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        page_size: int = 100,
        timeout: float = 30,
    ) -> None:
        self._session = session or requests.Session()
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def get_books(self) -> List[Book]:
        return await asyncio.to_thread(self._fetch_books)

    async def get_highlight_ids(self, fast_hash: str) -> List[str]:
        payload = await asyncio.to_thread(self._get_json, "notes", {"fast_hash": fast_hash})
        if isinstance(payload, Mapping):
            payload = payload.get("items")
        if not isinstance(payload, list):
            raise SourceFetchError(f"Unexpected highlight list format for book {fast_hash}")
        return [str(item["uuid"]) for item in payload if isinstance(item, Mapping) and item.get("uuid")]

    async def get_highlight(self, uuid: str, fast_hash: str) -> Highlight:
        payload = await asyncio.to_thread(self._get_json, f"notes/{uuid}", {"fast_hash": fast_hash})
        if not isinstance(payload, Mapping):
            raise SourceFetchError(f"Unexpected format for highlight {uuid}")
        data = dict(payload)
        data.setdefault("uuid", uuid)
        return Highlight.from_payload(data)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fetch_books(self) -> List[Book]:
        books: List[Book] = []
        offset = 0
        while True:
            data = self._get_json("books", {"limit": self.page_size, "offset": offset})
            if not isinstance(data, Mapping):
                raise SourceFetchError("Unexpected book list format from PocketBook Cloud API")
            items = data.get("items") or []
            books.extend(Book.from_payload(item) for item in items if isinstance(item, Mapping))
            offset += len(items)
            total = data.get("total")
            if not items or total is None or offset >= int(total):
                break
        return books

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "User-Agent": "PocketBook-Obsidian-Highlights/1.0",
        }

    def _get_json(self, endpoint: str, params: Dict[str, Any]) -> Any:
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self._session.get(url, params=params, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SourceFetchError(f"PocketBook Cloud request to {endpoint} failed: {exc}") from exc
        self._ensure_success(response, endpoint)
        try:
            return response.json()
        except ValueError as exc:
            raise SourceFetchError(f"Received invalid JSON from PocketBook Cloud endpoint {endpoint}") from exc

    def _ensure_success(self, response: object, endpoint: str) -> None:
        status = getattr(response, "status_code", None)
        if status is None or status >= 400:
            raise SourceFetchError(
                f"PocketBook Cloud request to {endpoint} failed with status code {status}."
            )
