"""In-memory result caches with LRU eviction."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any, Iterable, Mapping

from rdfqa.models import AggregatedResult, Row

DEFAULT_CACHE_SIZE = 100_000


class LruCache:
    """Thread-safe in-memory cache bounded to *maxsize* entries.

    The least recently used entry is evicted when a new key would exceed the
    bound.  Values are stored as given; callers store immutable snapshots.
    """

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.maxsize = maxsize
        self._store: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            value = self._store.get(key)
            if value is not None:
                self._store.move_to_end(key)
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = value
            self._store.move_to_end(key)
            while len(self._store) > self.maxsize:
                self._store.popitem(last=False)

    def invalidate(self, key: str | None = None) -> None:
        """Drop *key*, or every entry when *key* is ``None``."""
        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


class ResultCache:
    """Row-list and aggregated caches keyed by the exact query text.

    The two tiers are filled together on a miss but are otherwise
    independent: invalidating one leaves the other intact.  Keys are not
    normalized, so ``"q"`` and ``"q "`` are separate entries.  Entries are
    frozen on write and every read hands back a fresh copy.
    """

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE) -> None:
        self.rows = LruCache(maxsize)
        self.aggregated = LruCache(maxsize)

    def get_rows(self, query: str) -> list[Row] | None:
        frozen = self.rows.get(query)
        if frozen is None:
            return None
        return [dict(row) for row in frozen]

    def put_rows(self, query: str, rows: Iterable[Mapping[str, str]]) -> None:
        self.rows.set(query, tuple(tuple(row.items()) for row in rows))

    def get_aggregated(self, query: str) -> AggregatedResult | None:
        frozen = self.aggregated.get(query)
        if frozen is None:
            return None
        return {var: list(values) for var, values in frozen}

    def put_aggregated(self, query: str, result: Mapping[str, Iterable[str]]) -> None:
        self.aggregated.set(
            query, tuple((var, tuple(values)) for var, values in result.items())
        )

    def invalidate_rows(self, query: str | None = None) -> None:
        self.rows.invalidate(query)

    def invalidate_aggregated(self, query: str | None = None) -> None:
        self.aggregated.invalidate(query)

    def clear(self) -> None:
        self.rows.invalidate()
        self.aggregated.invalidate()

    def __len__(self) -> int:
        return len(self.rows) + len(self.aggregated)
