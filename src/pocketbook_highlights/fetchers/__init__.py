"""HTTP fetchers for retrieving highlights from remote reading services."""
from .pocketbook_cloud import HighlightSource, PocketbookCloudSource, SourceFetchError

__all__ = ["HighlightSource", "PocketbookCloudSource", "SourceFetchError"]
