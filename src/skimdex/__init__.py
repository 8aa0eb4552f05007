"""Skimdex: local full-text indexing with progressive search.

Typical use::

    from skimdex import Index, extractors

    extractors.ensure_loaded()
    with Index.in_memory() as index:
        index.add_text("doc://a", "the quick fox")
        index.flush()
        with index.progressive_search("fox") as search:
            batch = search.next(limit=10, timeout=1.0)
"""

from . import extractors
from .config import IndexConfig, IndexVariant, Settings, load_settings
from .exceptions import (
    ConfigError,
    ExtractionError,
    IndexClosedError,
    SearchError,
    SkimdexError,
    StorageError,
)
from .index import Index
from .search.base_search import AddOutcome, DocumentState, SearchOptions
from .search.progressive import ProgressiveSearch, SearchBatch, SearchResult, SessionState

__all__ = [
    "AddOutcome",
    "ConfigError",
    "DocumentState",
    "ExtractionError",
    "Index",
    "IndexClosedError",
    "IndexConfig",
    "IndexVariant",
    "ProgressiveSearch",
    "SearchBatch",
    "SearchError",
    "SearchOptions",
    "SearchResult",
    "SessionState",
    "Settings",
    "SkimdexError",
    "StorageError",
    "extractors",
    "load_settings",
]
