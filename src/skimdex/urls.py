"""Parsing of document keys.

A document is identified by its URL string exactly as the caller gave it;
nothing here normalizes keys. Path objects are converted to ``file://``
URLs so files can be addressed either way.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit
from urllib.request import url2pathname

UrlLike = Union[str, "os.PathLike[str]"]


def parse_url(value: UrlLike) -> Optional[str]:
    """Return the document key for `value`, or None if it is not a URL.

    Strings must carry a scheme (``doc://a``, ``file:///tmp/x.txt``).
    Path objects become absolute ``file://`` URLs.
    """
    if isinstance(value, os.PathLike):
        try:
            return Path(value).absolute().as_uri()
        except ValueError:
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if not parts.scheme or len(parts.scheme) < 2:
        # A one-letter scheme is a Windows drive, not a URL
        return None
    return value


def file_url_to_path(url: str) -> Optional[Path]:
    """Return the local path a ``file://`` URL points at, or None."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme != "file" or parts.netloc not in ("", "localhost"):
        return None
    return Path(url2pathname(parts.path))
