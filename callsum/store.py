"""
callsum Result Store - Append-only call history.

Responsibilities:
- Hold completed CallResults, most recent first
- Reject duplicate ids
- Lazy, restartable queries
- History aggregates (counts, durations, sentiment split)

Forbidden:
- No persistence (the storage medium is the caller's concern)
- No mutation of stored results
"""

import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from callsum.errors import DuplicateResultError
from callsum.models import CallResult, Sentiment


ResultPredicate = Callable[[CallResult], bool]


@dataclass(frozen=True)
class HistoryStats:
    """Aggregates over the stored history."""
    total_calls: int
    total_duration: int
    average_duration: int
    sentiment_counts: dict[str, int]
    total_action_items: int

    @property
    def positive_ratio(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.sentiment_counts[Sentiment.POSITIVE.value] / self.total_calls


class ResultQuery:
    """
    Restartable view over matching results.

    Every iteration walks a snapshot of the store taken when that
    iteration starts, in store order.
    """

    def __init__(self, store: "ResultStore", predicate: ResultPredicate | None = None):
        self._store = store
        self._predicate = predicate

    def __iter__(self) -> Iterator[CallResult]:
        for result in self._store._snapshot():
            if self._predicate is None or self._predicate(result):
                yield result


class ResultStore:
    """
    In-memory call history.

    Args:
        seed: Optional results to preload, given most recent first
    """

    def __init__(self, seed: Iterable[CallResult] = ()):
        self._results: list[CallResult] = []
        self._ids: set[str] = set()
        self._lock = threading.Lock()
        for result in reversed(list(seed)):
            self.append(result)

    def append(self, result: CallResult) -> None:
        """
        Insert a result at the head of the history.

        Raises:
            DuplicateResultError: If a result with the same id is stored.
        """
        with self._lock:
            if result.id in self._ids:
                raise DuplicateResultError(result.id)
            self._results.insert(0, result)
            self._ids.add(result.id)

    def query(self, predicate: ResultPredicate | None = None) -> ResultQuery:
        """Return a lazy, restartable sequence of results matching predicate."""
        return ResultQuery(self, predicate)

    def get(self, result_id: str) -> CallResult | None:
        for result in self._snapshot():
            if result.id == result_id:
                return result
        return None

    def stats(self) -> HistoryStats:
        results = self._snapshot()
        counts = {s.value: 0 for s in Sentiment}
        for result in results:
            counts[Sentiment(result.sentiment).value] += 1
        total_duration = sum(r.duration for r in results)
        return HistoryStats(
            total_calls=len(results),
            total_duration=total_duration,
            average_duration=total_duration // len(results) if results else 0,
            sentiment_counts=counts,
            total_action_items=sum(len(r.action_items) for r in results),
        )

    def _snapshot(self) -> tuple[CallResult, ...]:
        with self._lock:
            return tuple(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[CallResult]:
        return iter(self._snapshot())

    def __contains__(self, result_id: object) -> bool:
        return result_id in self._ids
