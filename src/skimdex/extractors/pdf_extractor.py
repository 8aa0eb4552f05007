"""PDF extractor backed by pypdf."""

from __future__ import annotations

from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from skimdex.exceptions import ExtractionError

from .base_extractor import BaseExtractor


class PDFExtractor(BaseExtractor):
    """Concatenates the text layer of every page."""

    mime_types = frozenset({"application/pdf"})

    def extract(self, path: Path) -> str:
        try:
            reader = PdfReader(str(path))
            parts = [page.extract_text() or "" for page in reader.pages]
        except (OSError, ValueError, PyPdfError) as e:
            raise ExtractionError(f"Cannot extract text from {path}: {e}") from e
        return "\n".join(parts).strip()
