"""Filesystem helpers consumed by folder indexing.

Two small collaborators live here: a best-effort MIME type detector
and a recursive file enumerator.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import List, Optional

# Types `mimetypes` does not know on every platform
_EXTRA_TYPES = {
    ".md": "text/markdown",
    ".mdx": "text/markdown",
    ".markdown": "text/markdown",
    ".rst": "text/x-rst",
}


def detect_mime_type(path: Path) -> Optional[str]:
    """Guess the MIME type of `path` from its extension; None if unknown."""
    suffix = path.suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    mime, _ = mimetypes.guess_type(path.name)
    return mime


def list_all_files(directory: Path) -> List[Path]:
    """Return every regular file below `directory`, recursively and sorted.

    Returns an empty list if `directory` is not a directory.
    """
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.rglob("*") if p.is_file())
