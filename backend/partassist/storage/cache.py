"""
Key-value cache backends with per-key expiry.

RedisCache is used when REDIS_URL is configured; otherwise an in-process
InMemoryCache keeps the same contract for a single worker.
"""
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from partassist.core.config import Settings, settings as default_settings
from partassist.core.errors import CacheUnavailable
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueCache(ABC):
    """Best-effort string cache. Backend failures raise CacheUnavailable."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def incr(self, key: str, ttl_seconds: int) -> int:
        """Increment a counter; the expiry starts with the first increment."""


class InMemoryCache(KeyValueCache):
    """
    In-process cache; entries vanish once their TTL has passed.

    Expired entries are swept on writes at most once per ``sweep_interval``
    seconds. Past ``max_entries`` the oldest writes are evicted first.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10000,
        sweep_interval: float = 60.0,
    ):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self.max_entries = max(1, max_entries)
        self.sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store(key, value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def incr(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None or now >= entry[1]:
            self._store(key, "1", now + ttl_seconds)
            return 1
        count = int(entry[0]) + 1
        self._entries[key] = (str(count), entry[1])
        return count

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _store(self, key: str, value: str, expires_at: float) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        # Re-insert so dict order tracks write age
        self._entries.pop(key, None)
        self._entries[key] = (value, expires_at)
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"🧹 Swept {len(expired)} expired cache entries")
        self._next_sweep = now + self.sweep_interval


class RedisCache(KeyValueCache):
    """Redis-backed cache shared across workers."""

    def __init__(self, url: Optional[str] = None, client: Optional[aioredis.Redis] = None):
        if client is None and not url:
            raise ValueError("RedisCache needs a url or a client")
        self._redis = client or aioredis.Redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self._redis.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"get {key}: {e}") from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"set {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"delete {key}: {e}") from e

    async def incr(self, key: str, ttl_seconds: int) -> int:
        try:
            count = await self._redis.incr(key)
            if count == 1:
                await self._redis.expire(key, ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"incr {key}: {e}") from e
        return int(count)

    async def close(self) -> None:
        await self._redis.aclose()


def create_cache(config: Settings = default_settings) -> KeyValueCache:
    if config.REDIS_URL:
        logger.info("🗄️ Using Redis cache")
        return RedisCache(url=config.REDIS_URL)
    logger.info("🗄️ REDIS_URL not set, using in-process cache")
    return InMemoryCache()
