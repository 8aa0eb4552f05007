"""Progressive search sessions.

A session wraps one engine cursor and hands out ranked results in bounded
batches. Each `next()` call is limited both in size and in wall-clock time,
so callers can show early results while a search is still running, and can
stop at any moment with `cancel()`.

Sessions keep only a weak reference to their `Index`; once the index is
closed or gone, a session behaves as exhausted.
"""

from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator, List, Optional

from skimdex.exceptions import IndexClosedError

from .base_search import SearchCursor, SearchOptions

if TYPE_CHECKING:
    from skimdex.index import Index

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A single search hit. Higher scores are more relevant."""

    url: str
    score: float


@dataclass(frozen=True, slots=True)
class SearchBatch:
    """The partial results returned by one `ProgressiveSearch.next()` call."""

    more_results_available: bool
    results: List[SearchResult] = field(default_factory=list)


class SessionState(Enum):
    CREATED = "created"
    DRAINING = "draining"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


_TERMINAL = (SessionState.EXHAUSTED, SessionState.CANCELLED)


class ProgressiveSearch:
    """Resumable, cancellable execution of one query.

    Create sessions with `Index.progressive_search()`, then call `next()`
    until `more_results_available` is False::

        with index.progressive_search("apache") as search:
            for batch in search.batches(limit=20):
                show(batch.results)
    """

    def __init__(
        self,
        index: Index,
        query: str,
        options: SearchOptions = SearchOptions.DEFAULT,
        cursor: Optional[SearchCursor] = None,
    ) -> None:
        self.query = query
        self.options = options
        self._index = weakref.ref(index)
        self._cursor = cursor
        self._lock = threading.Lock()
        # Without a cursor (index already closed) there is nothing to drain
        self._state = SessionState.CREATED if cursor is not None else SessionState.EXHAUSTED

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state in _TERMINAL

    def next(self, limit: int = 10, timeout: float = 1.0) -> SearchBatch:
        """Return up to `limit` further results, waiting at most `timeout` seconds.

        Results keep the engine's relevance order. After the batch that
        reports ``more_results_available=False`` every call returns an
        empty batch, without running the query again.
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        with self._lock:
            if self._state in _TERMINAL or self._cursor is None:
                return SearchBatch(False)
            self._state = SessionState.DRAINING
            cursor = self._cursor

        index = self._index()
        if index is None or index.closed:
            self._mark(SessionState.EXHAUSTED)
            return SearchBatch(False)

        try:
            advanced = index._run(cursor.advance, limit, timeout, default=None)
        except IndexClosedError:
            advanced = None
        if advanced is None:
            self._mark(SessionState.EXHAUSTED)
            return SearchBatch(False)

        matches, more = advanced
        # Hits whose document URL cannot be resolved are dropped
        results = [SearchResult(url=url, score=score) for url, score in matches if url]

        with self._lock:
            if self._state is SessionState.CANCELLED:
                return SearchBatch(False, results)
            if not more:
                self._state = SessionState.EXHAUSTED
        if not more:
            self._release(index)
        return SearchBatch(more, results)

    def batches(self, limit: int = 10, timeout: float = 1.0) -> Iterator[SearchBatch]:
        """Yield non-empty batches until the session is exhausted or cancelled."""
        while True:
            batch = self.next(limit, timeout)
            if batch.results:
                yield batch
            if not batch.more_results_available:
                return

    def cancel(self) -> None:
        """Stop the search. Safe to call repeatedly and while `next()` runs."""
        with self._lock:
            if self._state in _TERMINAL:
                return
            self._state = SessionState.CANCELLED
        if self._cursor is not None:
            # Interrupting does not touch the index, so it skips the queue
            self._cursor.interrupt()
            index = self._index()
            if index is not None:
                self._release(index)
        logger.debug("Cancelled search for %r", self.query)

    def _mark(self, state: SessionState) -> None:
        with self._lock:
            if self._state is not SessionState.CANCELLED:
                self._state = state

    def _release(self, index: Index) -> None:
        if self._cursor is not None:
            index._run(self._cursor.close)

    def __enter__(self) -> ProgressiveSearch:
        return self

    def __exit__(self, *exc: object) -> None:
        self.cancel()

    def __repr__(self) -> str:
        return f"ProgressiveSearch(query={self.query!r}, state={self._state.value})"
