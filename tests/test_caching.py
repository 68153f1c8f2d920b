"""Tests for batch caching: cache_key, BatchCache."""

from __future__ import annotations

import asyncio

import pytest

from rulekit import BatchCache, cache_key


class TestCacheKey:
    def test_argument_order_does_not_matter(self):
        assert cache_key("p", {"a": 1, "b": 2}) == cache_key("p", {"b": 2, "a": 1})

    def test_name_is_part_of_key(self):
        assert cache_key("p", {"a": 1}) != cache_key("q", {"a": 1})

    def test_values_are_part_of_key(self):
        assert cache_key("p", {"a": 1}) != cache_key("p", {"a": 2})
        assert cache_key("p", {"a": 1}) != cache_key("p", {"a": "1"})

    def test_nested_values(self):
        key = cache_key("p", {"value": {"b": [1, 2], "a": None}})
        assert key == 'p:{"value":{"a":null,"b":[1,2]}}'


class TestBatchCache:
    def test_sequential_calls_run_once(self):
        call_count = 0

        async def compute():
            nonlocal call_count
            call_count += 1
            return True

        async def main():
            cache = BatchCache()
            first = await cache.get_or_run("k", compute)
            second = await cache.get_or_run("k", compute)
            return cache, first, second

        cache, first, second = asyncio.run(main())
        assert first is True
        assert second is True
        assert call_count == 1
        assert cache.misses == 1
        assert cache.hits == 1
        assert "k" in cache
        assert len(cache) == 1

    def test_concurrent_calls_share_one_flight(self):
        call_count = 0

        async def compute():
            nonlocal call_count
            call_count += 1
            await asyncio.sleep(0.01)
            return call_count

        async def main():
            cache = BatchCache()
            return await asyncio.gather(
                *(cache.get_or_run("k", compute) for _ in range(5))
            )

        results = asyncio.run(main())
        assert results == [1, 1, 1, 1, 1]
        assert call_count == 1

    def test_different_keys_run_separately(self):
        call_count = 0

        async def compute():
            nonlocal call_count
            call_count += 1
            return call_count

        async def main():
            cache = BatchCache()
            await cache.get_or_run("a", compute)
            await cache.get_or_run("b", compute)

        asyncio.run(main())
        assert call_count == 2

    def test_error_is_shared(self):
        call_count = 0

        async def compute():
            nonlocal call_count
            call_count += 1
            await asyncio.sleep(0)
            raise RuntimeError("boom")

        async def main():
            cache = BatchCache()
            return await asyncio.gather(
                cache.get_or_run("k", compute),
                cache.get_or_run("k", compute),
                return_exceptions=True,
            )

        first, second = asyncio.run(main())
        assert isinstance(first, RuntimeError)
        assert first is second
        assert call_count == 1

    def test_caches_are_isolated(self):
        call_count = 0

        async def compute():
            nonlocal call_count
            call_count += 1
            return True

        async def main():
            await BatchCache().get_or_run("k", compute)
            await BatchCache().get_or_run("k", compute)

        asyncio.run(main())
        assert call_count == 2

    def test_error_propagates(self):
        async def compute():
            raise ValueError("bad")

        async def main():
            await BatchCache().get_or_run("k", compute)

        with pytest.raises(ValueError, match="bad"):
            asyncio.run(main())
