"""Index engine built on Whoosh.

The engine keeps staged additions and removals in memory and writes them
with a single Whoosh writer on `flush()`, so a document's pending state can
be reported until then. Searches run against the last committed snapshot and
score their hits under a time budget that resumes across calls.

Indexes live either in RAM (`RamStorage`) or in a directory, in which case
the `IndexConfig` is saved beside the Whoosh segment files.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from pydantic import ValidationError
from whoosh import index as whoosh_index
from whoosh import scoring
from whoosh.analysis import StandardAnalyzer
from whoosh.fields import ID, TEXT, Schema
from whoosh.filedb.filestore import RamStorage
from whoosh.matching import Matcher
from whoosh.qparser import AndGroup, OrGroup, QueryParser
from whoosh.query import NullQuery, Or, Query, QueryError, Term
from whoosh.searching import Searcher

from skimdex.config import IndexConfig
from skimdex.exceptions import IndexClosedError, SearchError, StorageError

from .base_search import AddOutcome, DocumentState, IndexEngine, Match, SearchCursor, SearchOptions

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "skimdex.json"
CONTENT_FIELD = "content"
# Terms kept from an example document in FIND_SIMILAR mode
SIMILAR_TERMS = 10


def _make_schema(config: IndexConfig) -> Schema:
    analyzer = StandardAnalyzer(stoplist=config.stop_words, minsize=config.min_term_length)
    return Schema(
        url=ID(stored=True, unique=True),
        content=TEXT(
            analyzer=analyzer,
            phrase=config.proximity_indexing,
            vector=config.stores_vectors,
        ),
        # Used to detect re-adds that would not change anything
        content_hash=ID(stored=True),
        mime_type=ID(stored=True),
    )


def _digest(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8", errors="ignore")).hexdigest()


def _read_config(path: Path) -> IndexConfig:
    """Load the saved configuration, falling back to defaults if unusable."""
    try:
        return IndexConfig.model_validate_json((path / CONFIG_FILENAME).read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning("No usable index configuration in %s (%s); using defaults", path, e)
        return IndexConfig()


@dataclass(slots=True)
class _StagedDocument:
    text: str
    content_hash: str
    mime_type: Optional[str] = None


class WhooshCursor(SearchCursor):
    """Incremental search over one committed snapshot of the index.

    Matching walks each segment's Whoosh matcher and keeps its position and
    the scored hits between calls, so a call that runs out of time resumes
    where the previous one stopped. Once every match is scored the hits are
    ranked once and served in pages from that list.
    """

    def __init__(self, searcher: Searcher, query: Query, *, scored: bool = True) -> None:
        self._searcher = searcher
        self._query = query
        self._scored = scored
        self._context = searcher.context() if scored else searcher.boolean_context()
        self._leaves: Iterator[Tuple[Searcher, int]] = iter(searcher.leaf_searchers())
        self._matcher: Optional[Matcher] = None
        self._offset = 0
        self._hits: List[Tuple[int, float]] = []
        self._ranked: Optional[List[Tuple[int, float]]] = None
        self._position = 0
        self._interrupted = threading.Event()
        self._closed = False

    def _collect(self, deadline: float) -> bool:
        """Score matches until all are seen (True) or time runs out (False).

        At least one match is scored per call, so repeated calls always finish.
        """
        scored_any = False
        while True:
            if self._matcher is None:
                leaf = next(self._leaves, None)
                if leaf is None:
                    return True
                subsearcher, self._offset = leaf
                self._matcher = self._query.matcher(subsearcher, self._context)

            matcher = self._matcher
            while matcher.is_active():
                if self._interrupted.is_set():
                    return False
                if scored_any and time.monotonic() >= deadline:
                    return False
                score = matcher.score() if self._scored else 0.0
                self._hits.append((self._offset + matcher.id(), score))
                scored_any = True
                matcher.next()
            self._matcher = None

    def advance(self, limit: int, timeout: float) -> Tuple[List[Match], bool]:
        if self._closed or self._interrupted.is_set():
            return [], False

        if self._ranked is None:
            try:
                finished = self._collect(time.monotonic() + timeout)
            except QueryError as e:
                logger.warning("Query %s cannot be evaluated on this index: %s", self._query, e)
                return [], False
            if self._interrupted.is_set():
                return [], False
            if not finished:
                return [], True
            # Stable sort keeps document order among equal scores
            self._ranked = sorted(self._hits, key=lambda hit: -hit[1])
            self._hits = []

        page = self._ranked[self._position:self._position + limit]
        self._position += len(page)
        matches: List[Match] = []
        for docnum, score in page:
            stored = self._searcher.stored_fields(docnum) or {}
            matches.append((stored.get("url"), float(score or 0.0)))
        return matches, self._position < len(self._ranked)

    def interrupt(self) -> None:
        self._interrupted.set()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._searcher.close()


class WhooshEngine(IndexEngine):
    """`IndexEngine` over a single Whoosh index."""

    def __init__(self, ix: whoosh_index.Index, config: IndexConfig) -> None:
        self._ix = ix
        self._config = config
        self._searcher = ix.searcher()
        self._staged_adds: Dict[str, _StagedDocument] = {}
        self._staged_removes: Set[str] = set()
        self._cursors: weakref.WeakSet[WhooshCursor] = weakref.WeakSet()
        self._closed = False

    # ----- Factories -----

    @classmethod
    def in_memory(cls, config: IndexConfig) -> WhooshEngine:
        ix = RamStorage().create_index(_make_schema(config))
        logger.debug("Created in-memory index (%s)", config.variant.name)
        return cls(ix, config)

    @classmethod
    def create(cls, path: Path, config: IndexConfig) -> WhooshEngine:
        if path.is_dir() and whoosh_index.exists_in(str(path)):
            raise StorageError(f"An index already exists in {path}")
        try:
            path.mkdir(parents=True, exist_ok=True)
            ix = whoosh_index.create_in(str(path), _make_schema(config))
            (path / CONFIG_FILENAME).write_text(config.model_dump_json(), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot create index in {path}: {e}") from e
        logger.debug("Created index in %s (%s)", path, config.variant.name)
        return cls(ix, config)

    @classmethod
    def open(cls, path: Path) -> WhooshEngine:
        if not path.is_dir() or not whoosh_index.exists_in(str(path)):
            raise StorageError(f"No index found in {path}")
        try:
            ix = whoosh_index.open_dir(str(path))
        except (OSError, whoosh_index.IndexError) as e:
            raise StorageError(f"Cannot open index in {path}: {e}") from e
        logger.debug("Opened index in %s", path)
        return cls(ix, _read_config(path))

    # ----- Documents -----

    @property
    def config(self) -> IndexConfig:
        return self._config

    def _check_open(self) -> None:
        if self._closed:
            raise IndexClosedError("Index is closed")

    def _current_hash(self, url: str) -> Optional[str]:
        """Content hash the document would have after a flush; None if absent."""
        if url in self._staged_adds:
            return self._staged_adds[url].content_hash
        if url in self._staged_removes:
            return None
        stored = self._searcher.document(url=url)
        if stored is None:
            return None
        return stored.get("content_hash", "")

    def add_text(
        self, url: str, text: str, *, can_replace: bool = False, mime_type: Optional[str] = None
    ) -> AddOutcome:
        self._check_open()
        digest = _digest(text)
        current = self._current_hash(url)
        if current is not None and (not can_replace or current == digest):
            return AddOutcome.UNCHANGED

        self._staged_removes.discard(url)
        self._staged_adds[url] = _StagedDocument(text=text, content_hash=digest, mime_type=mime_type)
        return AddOutcome.CREATED if current is None else AddOutcome.REPLACED

    def remove(self, url: str) -> bool:
        self._check_open()
        self._staged_adds.pop(url, None)
        if self._searcher.document_number(url=url) is not None:
            self._staged_removes.add(url)
        return True

    def document_state(self, url: str) -> DocumentState:
        self._check_open()
        if url in self._staged_adds:
            return DocumentState.ADD_PENDING
        if url in self._staged_removes:
            return DocumentState.DELETE_PENDING
        if self._searcher.document_number(url=url) is not None:
            return DocumentState.INDEXED
        return DocumentState.NOT_INDEXED

    def document_count(self) -> int:
        self._check_open()
        return self._searcher.doc_count()

    # ----- Commit -----

    def _refresh_searcher(self) -> None:
        fresh = self._searcher.refresh()
        if fresh is not self._searcher:
            self._searcher.close()
            self._searcher = fresh

    def flush(self) -> None:
        self._check_open()
        if not self._staged_adds and not self._staged_removes:
            return

        try:
            writer = self._ix.writer()
        except Exception as e:
            raise StorageError(f"Cannot open index writer: {e}") from e
        try:
            for url in self._staged_removes:
                writer.delete_by_term("url", url)
            for url, doc in self._staged_adds.items():
                fields = {"url": url, CONTENT_FIELD: doc.text, "content_hash": doc.content_hash}
                if doc.mime_type:
                    fields["mime_type"] = doc.mime_type
                writer.update_document(**fields)
        except Exception as e:
            writer.cancel()
            raise StorageError(f"Cannot write staged documents: {e}") from e
        try:
            writer.commit()
        except Exception as e:
            # Staged documents are kept so a later flush can retry them
            raise StorageError(f"Cannot commit staged documents: {e}") from e

        logger.debug(
            "Flushed %d additions and %d removals",
            len(self._staged_adds),
            len(self._staged_removes),
        )
        self._staged_adds.clear()
        self._staged_removes.clear()
        self._refresh_searcher()

    def optimize(self) -> None:
        self._check_open()
        self._ix.optimize()
        self._refresh_searcher()

    # ----- Search -----

    def _parse(self, searcher: Searcher, query: str, options: SearchOptions) -> Query:
        if not query or not query.strip():
            return NullQuery

        if SearchOptions.FIND_SIMILAR in options:
            if searcher.doc_count() == 0:
                return NullQuery
            try:
                keywords = searcher.key_terms_from_text(CONTENT_FIELD, query, numterms=SIMILAR_TERMS)
            except Exception as e:
                raise SearchError(f"Cannot extract key terms from {query!r}: {e}") from e
            words = [w.decode("utf-8") if isinstance(w, bytes) else w for w, _ in keywords]
            return Or([Term(CONTENT_FIELD, w) for w in words]) if words else NullQuery

        group = OrGroup if SearchOptions.SPACE_MEANS_OR in options else AndGroup
        parser = QueryParser(CONTENT_FIELD, schema=self._ix.schema, group=group)
        try:
            return parser.parse(query)
        except Exception:
            # On parse failure, fall back to OR-ing the analyzed words
            analyzer = self._ix.schema[CONTENT_FIELD].analyzer
            words = [t.text for t in analyzer(query)]
            return Or([Term(CONTENT_FIELD, w) for w in words]) if words else NullQuery

    def create_search(self, query: str, options: SearchOptions) -> WhooshCursor:
        self._check_open()
        searcher = self._ix.searcher(weighting=scoring.BM25F())
        try:
            parsed = self._parse(searcher, query, options)
        except SearchError:
            searcher.close()
            raise
        cursor = WhooshCursor(
            searcher,
            parsed,
            scored=SearchOptions.NO_RELEVANCE_SCORES not in options,
        )
        self._cursors.add(cursor)
        return cursor

    # ----- Lifecycle -----

    def close(self) -> None:
        if self._closed:
            return
        try:
            self.flush()
        finally:
            self._closed = True
            for cursor in list(self._cursors):
                cursor.close()
            self._searcher.close()
            self._ix.close()
            logger.debug("Closed index")
