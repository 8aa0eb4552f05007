"""Abstract base class for content extractors.

Extractors turn the bytes of a file into the plain text handed to the
index engine. Each extractor declares the MIME types it understands.

Concrete implementations should subclass `BaseExtractor` and implement
`extract()`.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar, FrozenSet


class BaseExtractor(ABC):
    """Abstract extractor interface."""

    mime_types: ClassVar[FrozenSet[str]] = frozenset()

    def can_extract(self, mime_type: str) -> bool:
        """Return True if this extractor handles `mime_type`."""
        return mime_type.lower() in self.mime_types

    @abstractmethod
    def extract(self, path: Path) -> str:
        """Read `path` and return its indexable text.

        Implementations should raise `skimdex.exceptions.ExtractionError` on failure.
        """
        raise NotImplementedError
