"""Custom exception hierarchy for Skimdex.

These exceptions allow callers to discriminate error categories
and handle them appropriately while preserving the original context.
Most public index operations translate them into failure values
(``False``, empty lists) instead of letting them escape.
"""

from __future__ import annotations


class SkimdexError(Exception):
    """Base class for all Skimdex exceptions."""


class ConfigError(SkimdexError):
    """Raised when configuration loading or validation fails."""


class ExtractionError(SkimdexError):
    """Raised when a file's content cannot be converted into indexable text."""


class StorageError(SkimdexError):
    """Raised when the index storage cannot be created, opened or written."""


class IndexClosedError(StorageError):
    """Raised by the engine when an operation reaches an already closed handle."""


class SearchError(SkimdexError):
    """Raised for search query or cursor issues."""
