"""The Skimdex index facade.

`Index` owns one engine handle and runs every operation on it through a
single-worker queue: calls are served one at a time, in submission order,
while the caller blocks for the result. The engine is therefore never used
by two threads at once, whichever mix of writers, state queries and search
sessions is running.

Public operations never raise for expected failures (unknown document,
closed index, unparsable URL, unreadable file). They return ``False``, an
empty list or ``DocumentState.NOT_INDEXED`` instead.
"""

from __future__ import annotations

import logging
import threading
import weakref
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, TypeVar

from skimdex import extractors
from skimdex.config import IndexConfig, Settings, load_settings
from skimdex.discovery import detect_mime_type, list_all_files
from skimdex.exceptions import ExtractionError, IndexClosedError, SearchError, StorageError
from skimdex.search.base_search import AddOutcome, DocumentState, IndexEngine, SearchOptions
from skimdex.search.progressive import ProgressiveSearch, SearchResult
from skimdex.search.whoosh_engine import WhooshEngine
from skimdex.urls import UrlLike, file_url_to_path, parse_url

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _close_dropped(engine: IndexEngine, queue: ThreadPoolExecutor) -> None:
    """Close the engine of an `Index` that was dropped without `close()`."""
    logger.debug("Index dropped without close(); closing it")
    try:
        future = queue.submit(engine.close)
    except RuntimeError:
        # At interpreter exit the worker is already gone
        future = None
    queue.shutdown(wait=False)
    try:
        if future is None:
            engine.close()
        else:
            future.result()
    except StorageError as e:
        logger.warning("Pending changes were lost on close: %s", e)


class Index:
    """Thread-safe full-text index of documents keyed by URL.

    Use one of the factories (`in_memory`, `create`, `open`, `from_settings`)
    rather than the constructor. Added documents become searchable after
    `flush()`.
    """

    def __init__(self, engine: IndexEngine, *, settings: Optional[Settings] = None) -> None:
        self._engine = engine
        self._settings = settings or load_settings()
        self._queue = ThreadPoolExecutor(max_workers=1, thread_name_prefix="skimdex-index")
        # Guards `_closed` and submission, so nothing is queued after close
        self._gate = threading.Lock()
        self._closed = False
        # Flushes and releases the engine if the index is dropped unclosed
        self._finalizer = weakref.finalize(self, _close_dropped, engine, self._queue)

    # ----- Factories -----

    @classmethod
    def in_memory(
        cls, config: Optional[IndexConfig] = None, *, settings: Optional[Settings] = None
    ) -> Index:
        """Create an index that lives only as long as this object."""
        return cls(WhooshEngine.in_memory(config or IndexConfig()), settings=settings)

    @classmethod
    def create(
        cls,
        path: Path | str,
        config: Optional[IndexConfig] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> Index:
        """Create a new index in directory `path`.

        Raises `StorageError` if the directory already holds an index.
        """
        return cls(WhooshEngine.create(Path(path), config or IndexConfig()), settings=settings)

    @classmethod
    def open(cls, path: Path | str, *, settings: Optional[Settings] = None) -> Index:
        """Open the index previously created in directory `path`.

        Raises `StorageError` if there is none.
        """
        return cls(WhooshEngine.open(Path(path)), settings=settings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> Index:
        """Open or create the index described by `Settings.index`."""
        settings = settings or load_settings()
        config = IndexConfig.from_settings(settings)
        path = settings.index.storage_path
        if path is None:
            return cls.in_memory(config, settings=settings)
        try:
            return cls.open(path, settings=settings)
        except StorageError:
            return cls.create(path, config, settings=settings)

    # ----- Serialization -----

    def _run(self, fn: Callable[..., T], *args: Any, default: Any = None, **kwargs: Any) -> T:
        """Run `fn` on the index worker and wait for its result.

        Returns `default` without running anything once the index is closed.
        """
        with self._gate:
            if self._closed:
                return default
            future = self._queue.submit(fn, *args, **kwargs)
        try:
            return future.result()
        except IndexClosedError:
            return default

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def config(self) -> IndexConfig:
        return self._engine.config

    @property
    def stop_words(self) -> FrozenSet[str]:
        """Stop words of the index; empty when none are configured."""
        words = getattr(self._engine.config, "stop_words", None)
        if isinstance(words, (set, frozenset)):
            return frozenset(words)
        return frozenset()

    # ----- Adding documents -----

    def add_text_outcome(self, url: UrlLike, text: str, can_replace: bool = False) -> AddOutcome:
        """Like `add_text`, but tells created, replaced and unchanged apart."""
        key = parse_url(url)
        if key is None:
            logger.debug("Not a document URL: %r", url)
            return AddOutcome.FAILED
        return self._run(
            self._engine.add_text, key, text, can_replace=can_replace, default=AddOutcome.FAILED
        )

    def add_text(self, url: UrlLike, text: str, can_replace: bool = False) -> bool:
        """Index `text` as the content of document `url`.

        Parameters
        ----------
        url:
            Document key, e.g. ``"doc://notes/1"``. Matched byte for byte.
        text:
            Content to index.
        can_replace:
            If False, an already indexed document is left untouched (and
            the call still returns True).
        """
        return self.add_text_outcome(url, text, can_replace).ok

    def add_file_outcome(
        self, url: UrlLike, mime_type: Optional[str] = None, can_replace: bool = False
    ) -> AddOutcome:
        """Like `add_file`, but tells created, replaced and unchanged apart."""
        if not extractors.is_loaded():
            logger.warning("Content extractors are not loaded; call skimdex.extractors.ensure_loaded()")
            return AddOutcome.FAILED

        key = parse_url(url)
        path = file_url_to_path(key) if key is not None else None
        if key is None or path is None:
            logger.debug("Not a file URL: %r", url)
            return AddOutcome.FAILED
        if self._closed:
            return AddOutcome.FAILED

        mime = mime_type or detect_mime_type(path)
        extractor = extractors.extractor_for(mime)
        if extractor is None:
            logger.debug("No extractor for %s (%s)", key, mime)
            return AddOutcome.FAILED
        try:
            text = extractor.extract(path)
        except ExtractionError as e:
            logger.warning("Skipping %s: %s", key, e)
            return AddOutcome.FAILED

        return self._run(
            self._engine.add_text,
            key,
            text,
            can_replace=can_replace,
            mime_type=mime,
            default=AddOutcome.FAILED,
        )

    def add_file(
        self, url: UrlLike, mime_type: Optional[str] = None, can_replace: bool = False
    ) -> bool:
        """Index the content of a file.

        `url` is a ``file://`` URL or a path. Without `mime_type` the type is
        guessed from the file name; unknown types are read as plain text.

        Note: True does not mean the index changed. Re-adding an existing
        document without `can_replace`, or with identical content, also
        returns True. Use `add_file_outcome` to tell these cases apart.
        """
        return self.add_file_outcome(url, mime_type, can_replace).ok

    def add_folder(self, folder_url: UrlLike, can_replace: bool = False) -> List[str]:
        """Add every file below a folder, recursively.

        Returns the URLs for which `add_file` succeeded, or an empty list if
        `folder_url` is not a directory.
        """
        key = parse_url(folder_url)
        directory = file_url_to_path(key) if key is not None else None
        if directory is None or not directory.is_dir():
            return []

        added: List[str] = []
        for path in list_all_files(directory):
            file_url = path.as_uri()
            if self.add_file(file_url, can_replace=can_replace):
                added.append(file_url)
        logger.debug("Added %d files from %s", len(added), directory)
        return added

    # ----- Removing documents -----

    def remove(self, url: UrlLike) -> bool:
        """Remove a document. True even if it was never indexed."""
        key = parse_url(url)
        if key is None:
            return False
        return self._run(self._engine.remove, key, default=False)

    def remove_all(self, urls: Iterable[UrlLike]) -> None:
        """Remove several documents, ignoring individual failures."""
        for url in urls:
            self.remove(url)

    # ----- State -----

    def document_state(self, url: UrlLike) -> DocumentState:
        key = parse_url(url)
        if key is None:
            return DocumentState.NOT_INDEXED
        return self._run(self._engine.document_state, key, default=DocumentState.NOT_INDEXED)

    def is_indexed(self, url: UrlLike) -> bool:
        return self.document_state(url) is DocumentState.INDEXED

    def document_count(self) -> int:
        """Number of searchable (flushed) documents."""
        return self._run(self._engine.document_count, default=0)

    # ----- Maintenance -----

    def flush(self) -> None:
        """Make pending additions and removals visible to new searches."""
        try:
            self._run(self._engine.flush)
        except StorageError as e:
            logger.warning("Flush failed: %s", e)

    def compact(self) -> None:
        """Merge the index storage into its most compact form."""
        self._run(self._engine.optimize)

    def close(self) -> None:
        """Write pending changes and release the index. Safe to call again."""
        with self._gate:
            if self._closed:
                return
            self._closed = True
            self._finalizer.detach()
            # Queued behind any operation still in flight
            future = self._queue.submit(self._engine.close)
        self._queue.shutdown(wait=False)
        try:
            future.result()
        except StorageError as e:
            logger.warning("Pending changes were lost on close: %s", e)

    # ----- Search -----

    def progressive_search(
        self, query: str, options: SearchOptions = SearchOptions.DEFAULT
    ) -> ProgressiveSearch:
        """Start a search whose results are fetched in batches.

        Only documents flushed before this call are visible to the session.
        """
        try:
            cursor = self._run(self._engine.create_search, query, options, default=None)
        except SearchError as e:
            logger.warning("Search for %r cannot start: %s", query, e)
            cursor = None
        return ProgressiveSearch(self, query, options, cursor)

    def search(
        self,
        query: str,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
        options: SearchOptions = SearchOptions.DEFAULT,
    ) -> List[SearchResult]:
        """Run a progressive search to completion and return every result.

        `limit` and `timeout` apply to each batch and default to the
        ``search`` settings.
        """
        if limit is None:
            limit = self._settings.search.default_limit
        if timeout is None:
            timeout = self._settings.search.default_timeout
        results: List[SearchResult] = []
        with self.progressive_search(query, options) as session:
            for batch in session.batches(limit, timeout):
                results.extend(batch.results)
        return results

    def __enter__(self) -> Index:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Index(variant={self.config.variant.name}, closed={self._closed})"
