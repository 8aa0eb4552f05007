"""Process-wide registry of content extractors.

Nothing is registered until `ensure_loaded()` runs; file indexing checks
`is_loaded()` and refuses to work before that, mirroring platforms where
extractor plugins are loaded once at application start.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from .base_extractor import BaseExtractor
from .html_extractor import HTMLExtractor
from .markdown_extractor import MarkdownExtractor
from .pdf_extractor import PDFExtractor
from .text_extractor import PlainTextExtractor

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_loaded = False
_extractors: List[BaseExtractor] = []
_default: Optional[BaseExtractor] = None


def ensure_loaded() -> bool:
    """Register the built-in extractors once; later calls are no-ops."""
    global _loaded, _default
    with _lock:
        if _loaded:
            return True
        _default = PlainTextExtractor()
        _extractors[:0] = [_default, HTMLExtractor(), MarkdownExtractor(), PDFExtractor()]
        _loaded = True
    logger.debug("Loaded %d content extractors", len(_extractors))
    return True


def is_loaded() -> bool:
    return _loaded


def register(extractor: BaseExtractor) -> None:
    """Add an extractor. Later registrations win over earlier ones for a MIME type."""
    with _lock:
        _extractors.append(extractor)


def extractor_for(mime_type: Optional[str]) -> Optional[BaseExtractor]:
    """Return the extractor for `mime_type`.

    With no MIME type the plain text extractor is returned. None means the
    type is known but nothing can extract it, or nothing is loaded yet.
    """
    with _lock:
        if not _loaded:
            return None
        if mime_type is None:
            return _default
        for extractor in reversed(_extractors):
            if extractor.can_extract(mime_type):
                return extractor
    return None


def reset() -> None:
    """Forget every registered extractor. Intended for tests."""
    global _loaded, _default
    with _lock:
        _extractors.clear()
        _default = None
        _loaded = False
