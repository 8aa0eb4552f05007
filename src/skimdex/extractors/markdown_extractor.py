"""Markdown extractor.

Implementation note: Markdown is converted to HTML using the `markdown`
library (tables and fenced code enabled), then `HTMLExtractor` produces the
text so both formats tokenize the same way.
"""

from __future__ import annotations

from pathlib import Path

import markdown as md  # type: ignore[import-untyped]

from skimdex.exceptions import ExtractionError

from .base_extractor import BaseExtractor
from .html_extractor import HTMLExtractor


class MarkdownExtractor(BaseExtractor):
    """Extractor for `.md` and `.mdx` files."""

    mime_types = frozenset({"text/markdown", "text/x-markdown"})

    def __init__(self) -> None:
        self._html = HTMLExtractor()
        self._extensions = ["tables", "fenced_code", "sane_lists"]

    def extract(self, path: Path) -> str:
        try:
            text = path.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            raise ExtractionError(f"Cannot read {path}: {e}") from e
        return self.extract_markdown_content(text)

    def extract_markdown_content(self, markdown_text: str) -> str:
        html = md.markdown(markdown_text, extensions=self._extensions)
        return self._html.extract_html_content(html)
