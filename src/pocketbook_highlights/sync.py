"""Drives a sync run: fetch books, order highlights, write documents."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Sequence

from .config import Layout, SyncConfig
from .fetchers import HighlightSource
from .markdown import (
    build_flat_highlight_block,
    build_highlight_document,
    build_metadata_document,
    sanitise_title,
)
from .models import Book, Highlight
from .ordering import order_highlights
from .storage import DocumentStore, StoreReconciler

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]


def import_root(import_folder: str) -> PurePosixPath:
    # An empty import folder means the vault root.
    return PurePosixPath(import_folder.strip("/"))


def book_folder(import_folder: str, title: str) -> str:
    return str(import_root(import_folder) / title)


def metadata_path(import_folder: str, title: str) -> str:
    return str(PurePosixPath(book_folder(import_folder, title), "metadata.md"))


def highlight_path(import_folder: str, title: str, uuid: str) -> str:
    return str(PurePosixPath(book_folder(import_folder, title), "highlights", f"{uuid}.md"))


def flat_document_path(import_folder: str, title: str) -> str:
    return str(import_root(import_folder) / f"{title}.md")


@dataclass
class SyncReport:
    """Outcome of a sync run."""

    books_seen: int = 0
    books_synced: int = 0
    books_skipped: int = 0
    highlights_written: int = 0
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class SyncOrchestrator:
    """Imports every book of a remote account into the document store.

    Books are processed one after the other; a failure while handling one book
    is reported and the run carries on with the next one.
    """

    def __init__(
        self,
        source: HighlightSource,
        store: DocumentStore,
        config: SyncConfig,
        notify: Notifier = print,
    ) -> None:
        self.source = source
        self.reconciler = StoreReconciler(store)
        self.config = config
        self.notify = notify

    async def run(self) -> SyncReport:
        report = SyncReport()
        self.notify("Importing highlights...")
        books = await self.source.get_books()
        report.books_seen = len(books)
        self.notify(f"Importing {len(books)} books.")

        for book in books:
            self.notify(f"Importing {book.title}")
            try:
                written = await self.sync_book(book)
            except Exception as exc:
                logger.exception("Failed to import %s", book.title)
                report.failures[book.title] = str(exc)
                self.notify(f"Failed to import {book.title}: {exc}")
                continue
            if written:
                report.books_synced += 1
                report.highlights_written += written
            else:
                report.books_skipped += 1

        self.notify(
            f"Import complete: {report.highlights_written} highlights from {report.books_synced} books."
        )
        return report

    async def fetch_highlights(self, book: Book) -> List[Highlight]:
        highlight_ids = await self.source.get_highlight_ids(book.fast_hash)
        return list(
            await asyncio.gather(
                *(self.source.get_highlight(uuid, book.fast_hash) for uuid in highlight_ids)
            )
        )

    async def sync_book(self, book: Book) -> int:
        """Import a single book and return the number of highlights written."""

        highlights = await self.fetch_highlights(book)
        if not highlights:
            logger.debug("No highlights for %s, skipping", book.title)
            return 0

        title = sanitise_title(book.title) or "untitled"
        if self.config.layout is Layout.FLAT:
            await self._write_flat(book, title, highlights)
        else:
            await self._write_nested(book, title, highlights)
        return len(highlights)

    async def _write_nested(self, book: Book, title: str, highlights: Sequence[Highlight]) -> None:
        import_folder = self.config.import_folder
        folder = book_folder(import_folder, title)
        await self.reconciler.ensure_folder(folder)
        await self.reconciler.ensure_folder(f"{folder}/highlights")

        await self.reconciler.write_overwrite(
            metadata_path(import_folder, title),
            build_metadata_document(book, Layout.NESTED, folder),
        )

        for sort_order, highlight in enumerate(order_highlights(highlights), start=1):
            await self.reconciler.write_overwrite(
                highlight_path(import_folder, title, highlight.uuid),
                build_highlight_document(book, highlight, sort_order),
            )

    async def _write_flat(self, book: Book, title: str, highlights: Sequence[Highlight]) -> None:
        import_folder = self.config.import_folder
        await self.reconciler.ensure_folder(str(import_root(import_folder)))

        path = flat_document_path(import_folder, title)
        # The aggregate document is seeded once; later runs only append to it.
        if not await self.reconciler.exists(path):
            await self.reconciler.write_overwrite(path, build_metadata_document(book, Layout.FLAT))

        for highlight in order_highlights(highlights):
            await self.reconciler.write_append(path, build_flat_highlight_block(highlight))


def sync(source: HighlightSource, store: DocumentStore, config: SyncConfig, notify: Notifier = print) -> SyncReport:
    """Run a complete sync on a fresh event loop."""

    return asyncio.run(SyncOrchestrator(source, store, config, notify).run())
