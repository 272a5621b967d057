from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from partassist.core.errors import CacheUnavailable
from partassist.core.models import ExpectingSlot, SessionContext
from partassist.storage.cache import InMemoryCache, RedisCache
from partassist.storage.session_context import SessionContextStore


class TestInMemoryCache:

    @pytest.mark.asyncio
    async def test_get_set_delete(self, memory_cache):
        await memory_cache.set("k", "v", 10)
        assert await memory_cache.get("k") == "v"
        await memory_cache.delete("k")
        assert await memory_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_entry_expires(self, memory_cache, clock):
        await memory_cache.set("k", "v", 10)
        clock.advance(9.9)
        assert await memory_cache.get("k") == "v"
        clock.advance(0.1)
        assert await memory_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_expired_keys_are_swept_on_write(self, memory_cache, clock):
        for i in range(200):
            await memory_cache.set(f"product:query-{i}:5", "[]", 86400)
        assert len(memory_cache) == 200

        clock.advance(86400)
        await memory_cache.set("product:PS11722130", "[]", 86400)

        assert len(memory_cache) == 1

    @pytest.mark.asyncio
    async def test_size_is_bounded(self, clock):
        cache = InMemoryCache(clock=clock, max_entries=3)
        for key in ["a", "b", "c", "d"]:
            await cache.set(key, key, 60)

        assert len(cache) == 3
        assert await cache.get("a") is None
        assert await cache.get("d") == "d"

    @pytest.mark.asyncio
    async def test_incr_counts_within_window(self, memory_cache, clock):
        assert await memory_cache.incr("ratelimit:1.2.3.4", 60) == 1
        assert await memory_cache.incr("ratelimit:1.2.3.4", 60) == 2
        clock.advance(60)
        assert await memory_cache.incr("ratelimit:1.2.3.4", 60) == 1


class TestRedisCache:

    @pytest.mark.asyncio
    async def test_incr_sets_expiry_on_first_hit(self):
        redis_client = MagicMock()
        redis_client.incr = AsyncMock(side_effect=[1, 2])
        redis_client.expire = AsyncMock()
        cache = RedisCache(client=redis_client)

        assert await cache.incr("ratelimit:1.2.3.4", 60) == 1
        assert await cache.incr("ratelimit:1.2.3.4", 60) == 2

        redis_client.expire.assert_awaited_once_with("ratelimit:1.2.3.4", 60)

    @pytest.mark.asyncio
    async def test_set_uses_expiry(self):
        redis_client = MagicMock()
        redis_client.set = AsyncMock()
        cache = RedisCache(client=redis_client)

        await cache.set("context:u1", "{}", 3600)

        redis_client.set.assert_awaited_once_with("context:u1", "{}", ex=3600)

    @pytest.mark.asyncio
    async def test_backend_errors_become_cache_unavailable(self):
        redis_client = MagicMock()
        redis_client.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        cache = RedisCache(client=redis_client)

        with pytest.raises(CacheUnavailable):
            await cache.get("context:u1")


class TestSessionContextStore:

    @pytest.mark.asyncio
    async def test_absent_context_is_empty(self, session_store):
        context = await session_store.get("nobody")
        assert context.is_empty()

    @pytest.mark.asyncio
    async def test_round_trip_before_expiry(self, session_store, clock):
        context = SessionContext(
            last_part="PS11752778",
            expecting=ExpectingSlot.MODEL_NUMBER_FOR_COMPAT,
            last_intent="compatibility_check",
        )
        await session_store.set("u1", context)
        clock.advance(3599)

        loaded = await session_store.get("u1")
        assert loaded == context
        assert loaded.expecting is ExpectingSlot.MODEL_NUMBER_FOR_COMPAT

    @pytest.mark.asyncio
    async def test_expired_context_reads_empty(self, session_store, clock):
        await session_store.set("u1", SessionContext(last_part="PS11752778"))
        clock.advance(3600)
        assert (await session_store.get("u1")).is_empty()

    @pytest.mark.asyncio
    async def test_write_restarts_expiry(self, session_store, clock):
        await session_store.set("u1", SessionContext(last_part="PS11752778"))
        clock.advance(3000)
        await session_store.set("u1", SessionContext(last_model="WDT780SAEM1"))
        clock.advance(3000)

        loaded = await session_store.get("u1")
        # Set overwrites the whole context
        assert loaded == SessionContext(last_model="WDT780SAEM1")

    @pytest.mark.asyncio
    async def test_clear(self, session_store):
        await session_store.set("u1", SessionContext(last_part="PS11752778"))
        await session_store.clear("u1")
        assert (await session_store.get("u1")).is_empty()

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, session_store):
        await session_store.set("u1", SessionContext(last_part="PS11752778"))
        assert (await session_store.get("u2")).is_empty()

    @pytest.mark.asyncio
    async def test_corrupt_entry_reads_empty(self, memory_cache):
        store = SessionContextStore(memory_cache)
        await memory_cache.set("context:u1", "not json", 60)
        assert (await store.get("u1")).is_empty()

    @pytest.mark.asyncio
    async def test_unreachable_cache_degrades(self):
        cache = MagicMock(spec=InMemoryCache)
        cache.get = AsyncMock(side_effect=CacheUnavailable("down"))
        cache.set = AsyncMock(side_effect=CacheUnavailable("down"))
        cache.delete = AsyncMock(side_effect=CacheUnavailable("down"))
        store = SessionContextStore(cache)

        assert (await store.get("u1")).is_empty()
        await store.set("u1", SessionContext(last_part="PS11752778"))
        await store.clear("u1")
