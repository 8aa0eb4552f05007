"""Abstract index engine interface.

Defines the primitives the `Index` facade orchestrates: document writes,
state queries, flushing and incremental search cursors. Engines are not
required to be thread-safe; the facade guarantees that at most one engine
or cursor method runs at a time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum, Flag, auto
from typing import List, Optional, Tuple

from skimdex.config import IndexConfig


class DocumentState(Enum):
    """Indexing state of a document, as reported by the engine."""

    NOT_INDEXED = "not_indexed"
    INDEXED = "indexed"
    ADD_PENDING = "add_pending"
    DELETE_PENDING = "delete_pending"


class AddOutcome(Enum):
    """What an add call did to the index."""

    CREATED = "created"
    REPLACED = "replaced"
    # Accepted but nothing changed: existing document without replace, or same content
    UNCHANGED = "unchanged"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self is not AddOutcome.FAILED


class SearchOptions(Flag):
    """Search mode flags."""

    DEFAULT = 0
    NO_RELEVANCE_SCORES = auto()
    SPACE_MEANS_OR = auto()
    FIND_SIMILAR = auto()


# (url, score); url is None when the match can no longer be resolved
Match = Tuple[Optional[str], float]


class SearchCursor(ABC):
    """Live, stateful handle on one in-progress search."""

    @abstractmethod
    def advance(self, limit: int, timeout: float) -> Tuple[List[Match], bool]:
        """Return up to `limit` further matches found within `timeout` seconds.

        The boolean is True when more matches may remain. Matches already
        returned by this cursor are never returned again.
        """

    @abstractmethod
    def interrupt(self) -> None:
        """Ask an in-flight or future `advance` to stop collecting.

        This is the only cursor method that may be called concurrently with
        another one.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the resources held by the cursor."""


class IndexEngine(ABC):
    """Abstract interface for index engine implementations."""

    @property
    @abstractmethod
    def config(self) -> IndexConfig:
        """The configuration the index was created with."""

    @abstractmethod
    def add_text(
        self, url: str, text: str, *, can_replace: bool = False, mime_type: Optional[str] = None
    ) -> AddOutcome:
        """Stage `text` as the content of document `url` until the next flush."""

    @abstractmethod
    def remove(self, url: str) -> bool:
        """Stage removal of document `url`. Succeeds for unknown documents."""

    @abstractmethod
    def document_state(self, url: str) -> DocumentState:
        """Return the current state of document `url`."""

    @abstractmethod
    def document_count(self) -> int:
        """Number of searchable documents."""

    @abstractmethod
    def flush(self) -> None:
        """Commit staged changes so searches see them."""

    @abstractmethod
    def optimize(self) -> None:
        """Compact the index storage."""

    @abstractmethod
    def create_search(self, query: str, options: SearchOptions) -> SearchCursor:
        """Open a cursor over the currently committed documents."""

    @abstractmethod
    def close(self) -> None:
        """Release the engine handle; later calls raise `IndexClosedError`."""
        raise NotImplementedError
