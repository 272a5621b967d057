import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from partassist.core.errors import CacheUnavailable
from partassist.core.models import CompatibilityResult, ProductRef
from partassist.storage.cache import InMemoryCache
from partassist.storage.catalog import ProductCatalog

VALVE = ProductRef(part_number="PS11722130", name="Water Inlet Valve", price=54.95)


@pytest.fixture
def store():
    store = MagicMock()
    store.find_by_part_number.return_value = [VALVE]
    store.search_similar.return_value = [VALVE]
    store.check_compatibility.return_value = CompatibilityResult(is_compatible=True, details="fits")
    return store


@pytest.fixture
def embedder():
    embedder = MagicMock()
    embedder.embed.return_value = [0.1, 0.2, 0.3]
    return embedder


def make_catalog(store, cache, embedder=None):
    return ProductCatalog(store, cache, embedder=embedder, retry_attempts=3, retry_delay=0)


class TestProductCatalog:

    @pytest.mark.asyncio
    async def test_second_lookup_is_served_from_cache(self, store, memory_cache):
        catalog = make_catalog(store, memory_cache)

        assert await catalog.find_part("PS11722130") == [VALVE]
        assert await catalog.find_part("ps11722130") == [VALVE]

        store.find_by_part_number.assert_called_once_with("PS11722130")

    @pytest.mark.asyncio
    async def test_cache_entry_expires_after_a_day(self, store, memory_cache, clock):
        catalog = make_catalog(store, memory_cache)
        await catalog.find_part("PS11722130")
        clock.advance(86400)
        await catalog.find_part("PS11722130")
        assert store.find_by_part_number.call_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_query_store_once(self, store, memory_cache):
        catalog = make_catalog(store, memory_cache)

        results = await asyncio.gather(*(catalog.find_part("PS11722130") for _ in range(10)))

        assert all(result == [VALVE] for result in results)
        assert store.find_by_part_number.call_count == 1

    @pytest.mark.asyncio
    async def test_per_key_locks_are_released_when_idle(self, store, memory_cache, embedder):
        catalog = make_catalog(store, memory_cache, embedder=embedder)

        for i in range(200):
            await catalog.find_similar(f"shelf bracket {i}")
        await catalog.check_compatibility("PS11752778", "WDT780SAEM1")

        assert embedder.embed.call_count == 200
        assert len(catalog._locks) == 0

    @pytest.mark.asyncio
    async def test_compatibility_is_cached(self, store, memory_cache):
        catalog = make_catalog(store, memory_cache)

        first = await catalog.check_compatibility("PS11752778", "WDT780SAEM1")
        second = await catalog.check_compatibility("ps11752778", "wdt780saem1")

        assert first == second
        assert first.is_compatible
        assert store.check_compatibility.call_count == 1

    @pytest.mark.asyncio
    async def test_transient_store_errors_are_retried(self, store, memory_cache):
        store.find_by_part_number.side_effect = [OSError("reset"), [VALVE]]
        catalog = make_catalog(store, memory_cache)

        assert await catalog.find_part("PS11722130") == [VALVE]
        assert store.find_by_part_number.call_count == 2

    @pytest.mark.asyncio
    async def test_unreachable_cache_still_answers(self, store):
        cache = MagicMock(spec=InMemoryCache)
        cache.get = AsyncMock(side_effect=CacheUnavailable("down"))
        cache.set = AsyncMock(side_effect=CacheUnavailable("down"))
        catalog = make_catalog(store, cache)

        assert await catalog.find_part("PS11722130") == [VALVE]
        assert (await catalog.check_compatibility("PS11752778", "WDT780SAEM1")).is_compatible

    @pytest.mark.asyncio
    async def test_find_similar_embeds_then_searches(self, store, embedder, memory_cache):
        catalog = make_catalog(store, memory_cache, embedder)

        assert await catalog.find_similar("  water   inlet valve ", k=3) == [VALVE]
        await catalog.find_similar("water inlet valve", k=3)

        embedder.embed.assert_called_once_with("water inlet valve")
        store.search_similar.assert_called_once_with([0.1, 0.2, 0.3], 3)

    @pytest.mark.asyncio
    async def test_find_similar_without_embedder(self, store, memory_cache):
        catalog = make_catalog(store, memory_cache)
        assert await catalog.find_similar("water inlet valve") == []
        store.search_similar.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_similarity_query(self, store, embedder, memory_cache):
        catalog = make_catalog(store, memory_cache, embedder)
        assert await catalog.find_similar("   ") == []
        embedder.embed.assert_not_called()
