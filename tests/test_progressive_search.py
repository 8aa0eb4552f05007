import threading
from typing import Iterator, List, Optional, Tuple

import pytest

from skimdex import (
    Index,
    IndexConfig,
    SearchBatch,
    SearchOptions,
    SearchResult,
    SessionState,
)
from skimdex.search import whoosh_engine
from skimdex.search.base_search import Match, SearchCursor
from skimdex.search.progressive import ProgressiveSearch

# ---------- Helpers ----------


@pytest.fixture
def index() -> Iterator[Index]:
    idx = Index.in_memory()
    yield idx
    idx.close()


@pytest.fixture
def animals(index: Index) -> Index:
    index.add_text("doc://a", "the quick fox")
    index.add_text("doc://b", "the lazy dog")
    index.flush()
    return index


def drain(session: ProgressiveSearch, limit: int) -> Tuple[List[SearchResult], List[SearchBatch]]:
    batches: List[SearchBatch] = []
    while True:
        batch = session.next(limit, timeout=5.0)
        batches.append(batch)
        if not batch.more_results_available:
            break
        assert len(batches) < 1000, "search did not terminate"
    return [r for b in batches for r in b.results], batches


class StaticCursor(SearchCursor):
    def __init__(self, matches: List[Match]) -> None:
        self.matches = matches
        self.closed = False

    def advance(self, limit: int, timeout: float) -> Tuple[List[Match], bool]:
        out, self.matches = self.matches[:limit], self.matches[limit:]
        return out, bool(self.matches)

    def interrupt(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class BlockingCursor(SearchCursor):
    """Holds `advance` until interrupted, then returns one partial hit."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.interrupted = threading.Event()
        self.closed = False

    def advance(self, limit: int, timeout: float) -> Tuple[List[Match], bool]:
        self.started.set()
        self.interrupted.wait(timeout)
        return [("doc://partial", 1.0)], not self.interrupted.is_set()

    def interrupt(self) -> None:
        self.interrupted.set()

    def close(self) -> None:
        self.closed = True


# ---------- Draining ----------


def test_limit_one_drains_two_documents_in_two_calls(animals: Index) -> None:
    session = animals.progressive_search("the")
    assert session.state is SessionState.CREATED

    first = session.next(limit=1, timeout=1.0)
    assert first.more_results_available is True
    assert len(first.results) == 1
    assert session.state is SessionState.DRAINING

    second = session.next(limit=1, timeout=1.0)
    assert second.more_results_available is False
    assert len(second.results) == 1

    assert {first.results[0].url, second.results[0].url} == {"doc://a", "doc://b"}
    assert session.state is SessionState.EXHAUSTED


@pytest.mark.parametrize("limit", [1, 3, 4, 25, 100])
def test_batches_concatenate_to_ranked_result_set(index: Index, limit: int) -> None:
    for i in range(25):
        words = " ".join(["alpha"] * (i % 7 + 1) + ["filler"] * (i % 5))
        index.add_text(f"doc://{i}", words)
    index.add_text("doc://other", "beta gamma")
    index.flush()

    results, batches = drain(index.progressive_search("alpha"), limit)

    urls = [r.url for r in results]
    assert len(urls) == 25
    assert len(set(urls)) == 25
    assert "doc://other" not in urls
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert all(len(b.results) <= limit for b in batches)
    assert batches[-1].more_results_available is False


def test_exhausted_session_returns_empty_batches(animals: Index) -> None:
    session = animals.progressive_search("fox")
    batch = session.next(limit=10, timeout=1.0)
    assert [r.url for r in batch.results] == ["doc://a"]
    assert batch.more_results_available is False

    for _ in range(3):
        assert session.next(limit=10, timeout=1.0) == SearchBatch(False, [])
    assert session.done is True


def test_query_without_matches_is_an_empty_success(animals: Index) -> None:
    session = animals.progressive_search("unicorn")
    assert session.next(limit=5, timeout=1.0) == SearchBatch(False, [])
    assert session.state is SessionState.EXHAUSTED


def test_empty_query_matches_nothing(animals: Index) -> None:
    assert animals.progressive_search("   ").next() == SearchBatch(False, [])


def test_results_carry_positive_scores(animals: Index) -> None:
    results = animals.search("fox")
    assert len(results) == 1
    assert results[0].score > 0.0


def test_session_sees_the_index_as_of_its_creation(animals: Index) -> None:
    session = animals.progressive_search("the")
    animals.add_text("doc://c", "the slow snail")
    animals.flush()

    results, _ = drain(session, limit=10)
    assert sorted(r.url for r in results) == ["doc://a", "doc://b"]
    assert len(animals.search("the")) == 3


def test_invalid_arguments_are_rejected(animals: Index) -> None:
    session = animals.progressive_search("fox")
    with pytest.raises(ValueError):
        session.next(limit=0)
    with pytest.raises(ValueError):
        session.next(limit=1, timeout=0)


def test_batches_iterator_skips_empty_batches(animals: Index) -> None:
    with animals.progressive_search("the") as session:
        batches = list(session.batches(limit=1))
    assert [len(b.results) for b in batches] == [1, 1]
    assert batches[-1].more_results_available is False


# ---------- Time budget ----------


class SteppingClock:
    """Stands in for the `time` module; every reading is one second later."""

    def __init__(self) -> None:
        self.now = 0.0

    def monotonic(self) -> float:
        self.now += 1.0
        return self.now


def test_timed_out_calls_resume_where_they_stopped(
    index: Index, monkeypatch: pytest.MonkeyPatch
) -> None:
    for i in range(5):
        index.add_text(f"doc://{i}", "alpha " * (i + 1))
    index.flush()
    monkeypatch.setattr(whoosh_engine, "time", SteppingClock())

    session = index.progressive_search("alpha")
    # The budget runs out after one scored match per call
    for _ in range(4):
        assert session.next(limit=10, timeout=0.5) == SearchBatch(True, [])

    batch = session.next(limit=10, timeout=0.5)
    assert batch.more_results_available is False
    assert [r.url for r in batch.results] == [f"doc://{i}" for i in reversed(range(5))]
    assert session.state is SessionState.EXHAUSTED


def test_tiny_time_budget_still_drains_everything(index: Index) -> None:
    expected = {f"doc://{i}" for i in range(600)}
    for url in expected:
        index.add_text(url, f"alpha {url}")
    index.flush()

    session = index.progressive_search("alpha")
    results: List[SearchResult] = []
    calls = 0
    while True:
        batch = session.next(limit=50, timeout=0.000001)
        results.extend(batch.results)
        calls += 1
        if not batch.more_results_available:
            break
        assert calls < 5000, "search did not terminate"

    urls = [r.url for r in results]
    assert len(urls) == len(set(urls))
    assert set(urls) == expected
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)


# ---------- Cancellation ----------


def test_cancel_ends_the_session(animals: Index) -> None:
    session = animals.progressive_search("the")
    first = session.next(limit=1, timeout=1.0)
    assert first.more_results_available is True

    session.cancel()
    session.cancel()

    assert session.state is SessionState.CANCELLED
    for _ in range(3):
        assert session.next(limit=1, timeout=1.0) == SearchBatch(False, [])


def test_cancel_before_first_call(animals: Index) -> None:
    session = animals.progressive_search("the")
    session.cancel()
    assert session.next() == SearchBatch(False, [])


def test_leaving_context_cancels_session(animals: Index) -> None:
    with animals.progressive_search("the") as session:
        session.next(limit=1)
    assert session.state is SessionState.CANCELLED
    assert session.next() == SearchBatch(False, [])


def test_cancel_interrupts_in_flight_next(index: Index) -> None:
    cursor = BlockingCursor()
    session = ProgressiveSearch(index, "anything", cursor=cursor)
    outcome: List[Optional[SearchBatch]] = [None]

    def run() -> None:
        outcome[0] = session.next(limit=5, timeout=30.0)

    worker = threading.Thread(target=run)
    worker.start()
    assert cursor.started.wait(5.0)

    session.cancel()
    worker.join(5.0)

    assert not worker.is_alive()
    assert outcome[0] == SearchBatch(False, [SearchResult("doc://partial", 1.0)])
    assert cursor.closed is True
    assert session.next() == SearchBatch(False, [])


def test_cancel_only_affects_its_own_session(animals: Index) -> None:
    cancelled = animals.progressive_search("the")
    running = animals.progressive_search("the")
    cancelled.cancel()

    results, _ = drain(running, limit=1)
    assert len(results) == 2


# ---------- Result resolution ----------


def test_unresolvable_matches_are_dropped(index: Index) -> None:
    cursor = StaticCursor([(None, 3.0), ("doc://x", 2.0), ("", 1.5), ("doc://y", 1.0)])
    session = ProgressiveSearch(index, "anything", cursor=cursor)

    batch = session.next(limit=4)
    assert batch == SearchBatch(False, [SearchResult("doc://x", 2.0), SearchResult("doc://y", 1.0)])
    assert cursor.closed is True


def test_engine_order_is_preserved(index: Index) -> None:
    cursor = StaticCursor([("doc://low", 0.1), ("doc://high", 9.0)])
    session = ProgressiveSearch(index, "anything", cursor=cursor)
    assert [r.url for r in session.next(limit=2).results] == ["doc://low", "doc://high"]


# ---------- Index lifetime ----------


def test_session_on_closed_index_is_exhausted(animals: Index) -> None:
    session = animals.progressive_search("the")
    animals.close()
    assert session.next(limit=1) == SearchBatch(False, [])
    assert session.state is SessionState.EXHAUSTED


def test_session_opened_after_close_is_exhausted(animals: Index) -> None:
    animals.close()
    session = animals.progressive_search("the")
    assert session.done is True
    assert session.next() == SearchBatch(False, [])


def test_close_during_drain(animals: Index) -> None:
    session = animals.progressive_search("the")
    assert session.next(limit=1).more_results_available is True
    animals.close()
    assert session.next(limit=1) == SearchBatch(False, [])
    session.cancel()


# ---------- Search options ----------


def test_default_requires_all_terms(animals: Index) -> None:
    assert animals.search("quick dog") == []


def test_space_means_or(animals: Index) -> None:
    results = animals.search("quick dog", options=SearchOptions.SPACE_MEANS_OR)
    assert sorted(r.url for r in results) == ["doc://a", "doc://b"]


def test_no_relevance_scores(animals: Index) -> None:
    results = animals.search("the", options=SearchOptions.NO_RELEVANCE_SCORES)
    assert len(results) == 2
    assert all(r.score == 0.0 for r in results)


def test_find_similar(index: Index) -> None:
    index.add_text("doc://fox", "quick brown fox jumps over fences")
    index.add_text("doc://dog", "lazy dog sleeps all day")
    index.add_text("doc://market", "stock market report")
    index.flush()

    results = index.search("a brown fox jumps", options=SearchOptions.FIND_SIMILAR)
    assert [r.url for r in results] == ["doc://fox"]


def test_find_similar_on_empty_index(index: Index) -> None:
    assert index.search("brown fox", options=SearchOptions.FIND_SIMILAR) == []


def test_phrase_queries_need_proximity_indexing() -> None:
    with Index.in_memory(IndexConfig(proximity_indexing=False)) as idx:
        idx.add_text("doc://a", "the quick fox")
        idx.flush()
        assert idx.search('"quick fox"') == []

    with Index.in_memory(IndexConfig(proximity_indexing=True)) as idx:
        idx.add_text("doc://a", "the quick fox")
        idx.add_text("doc://b", "fox quick the")
        idx.flush()
        assert [r.url for r in idx.search('"quick fox"')] == ["doc://a"]
