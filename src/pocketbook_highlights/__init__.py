"""Utilities for syncing PocketBook Cloud highlights into Markdown."""

from .config import Layout, SyncConfig
from .models import Book, BookMetadata, Highlight, Quotation
from .sync import SyncOrchestrator, SyncReport, sync

__all__ = [
    "Book",
    "BookMetadata",
    "Highlight",
    "Layout",
    "Quotation",
    "SyncConfig",
    "SyncOrchestrator",
    "SyncReport",
    "sync",
]
