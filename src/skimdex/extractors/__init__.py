"""Content extraction plugins.

Extractors convert file contents into indexable text. They become available
after a single `ensure_loaded()` call per process.
"""

from .base_extractor import BaseExtractor
from .html_extractor import HTMLExtractor
from .markdown_extractor import MarkdownExtractor
from .pdf_extractor import PDFExtractor
from .registry import ensure_loaded, extractor_for, is_loaded, register, reset
from .text_extractor import PlainTextExtractor

__all__ = [
    "BaseExtractor",
    "HTMLExtractor",
    "MarkdownExtractor",
    "PDFExtractor",
    "PlainTextExtractor",
    "ensure_loaded",
    "extractor_for",
    "is_loaded",
    "register",
    "reset",
]
