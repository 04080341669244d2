"""Tests for the LRU and two-tier result caches."""

from __future__ import annotations

import threading

import pytest

from rdfqa.cache import LruCache, ResultCache


class TestLruCache:
    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            LruCache(0)

    def test_evicts_least_recently_used(self):
        cache = LruCache(maxsize=2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a") == 1  # "b" is now the oldest
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_overwrite_does_not_grow(self):
        cache = LruCache(maxsize=2)
        cache.set("a", 1)
        cache.set("a", 2)
        assert cache.get("a") == 2
        assert len(cache) == 1

    def test_invalidate(self):
        cache = LruCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2
        cache.invalidate()
        assert len(cache) == 0

    def test_size_bound_holds_under_concurrent_writes(self):
        cache = LruCache(maxsize=16)

        def writer(offset):
            for i in range(500):
                cache.set(f"{offset}:{i}", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cache) == 16


class TestResultCache:
    def test_miss_returns_none(self):
        cache = ResultCache()
        assert cache.get_rows("q") is None
        assert cache.get_aggregated("q") is None

    def test_rows_round_trip(self):
        cache = ResultCache()
        cache.put_rows("q", [{"x": "a", "y": "b"}, {"x": "c"}])
        assert cache.get_rows("q") == [{"x": "a", "y": "b"}, {"x": "c"}]

    def test_empty_rows_are_a_hit(self):
        cache = ResultCache()
        cache.put_rows("q", [])
        assert cache.get_rows("q") == []

    def test_entries_cannot_be_mutated_through_reads_or_writes(self):
        cache = ResultCache()
        rows = [{"x": "a"}]
        cache.put_rows("q", rows)
        rows[0]["x"] = "changed"
        rows.append({"x": "extra"})

        read = cache.get_rows("q")
        read[0]["x"] = "also changed"

        assert cache.get_rows("q") == [{"x": "a"}]

    def test_aggregated_round_trip_keeps_order(self):
        cache = ResultCache()
        cache.put_aggregated("q", {"x": ["b", "a"], "name": ["B"]})
        assert cache.get_aggregated("q") == {"x": ["b", "a"], "name": ["B"]}

    def test_trailing_whitespace_is_a_distinct_key(self):
        cache = ResultCache()
        cache.put_rows("SELECT ?x {}", [{"x": "a"}])
        assert cache.get_rows("SELECT ?x {} ") is None

    def test_last_write_wins(self):
        cache = ResultCache()
        cache.put_rows("q", [{"x": "first"}])
        cache.put_rows("q", [{"x": "second"}])
        assert cache.get_rows("q") == [{"x": "second"}]

    def test_tiers_are_invalidated_independently(self):
        cache = ResultCache()
        cache.put_rows("q", [{"x": "a"}])
        cache.put_aggregated("q", {"x": ["a"]})

        cache.invalidate_rows("q")
        assert cache.get_rows("q") is None
        assert cache.get_aggregated("q") == {"x": ["a"]}

        cache.put_rows("q", [{"x": "a"}])
        cache.invalidate_aggregated()
        assert cache.get_aggregated("q") is None
        assert cache.get_rows("q") == [{"x": "a"}]

    def test_clear(self):
        cache = ResultCache(maxsize=10)
        cache.put_rows("q", [{"x": "a"}])
        cache.put_aggregated("q", {"x": ["a"]})
        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0
