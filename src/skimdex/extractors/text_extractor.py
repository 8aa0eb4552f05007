"""Plain text extractor, also the engine's default when no MIME type is known."""

from __future__ import annotations

from pathlib import Path

from skimdex.exceptions import ExtractionError

from .base_extractor import BaseExtractor


class PlainTextExtractor(BaseExtractor):
    """Reads a file as UTF-8 text, ignoring undecodable bytes."""

    mime_types = frozenset(
        {
            "text/plain",
            "text/csv",
            "text/x-rst",
            "text/x-python",
            "application/json",
            "application/xml",
            "text/xml",
        }
    )

    def extract(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            raise ExtractionError(f"Cannot read {path}: {e}") from e
