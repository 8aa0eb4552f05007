"""HTML extractor that reduces markup to its visible text.

Also used by the Markdown extractor, which renders to HTML first.
"""

from __future__ import annotations

from pathlib import Path

from bs4 import BeautifulSoup  # type: ignore[import-untyped]

from skimdex.exceptions import ExtractionError

from .base_extractor import BaseExtractor


class HTMLExtractor(BaseExtractor):
    """Extractor for HTML content."""

    mime_types = frozenset({"text/html", "application/xhtml+xml"})

    def extract(self, path: Path) -> str:
        """Extract text from an HTML file on disk."""
        try:
            html = path.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            raise ExtractionError(f"Cannot read {path}: {e}") from e
        return self.extract_html_content(html)

    def extract_html_content(self, html: str) -> str:
        """Return the visible text of an HTML string.

        Script and style elements are dropped; remaining text nodes are joined
        with single spaces.
        """
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style"]):
            tag.decompose()
        return soup.get_text(" ", strip=True)
