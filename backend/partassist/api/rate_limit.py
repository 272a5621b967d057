"""
Fixed-window request limiting per client IP.

Counters live in the key-value cache, so with Redis configured every worker
shares the same window. If the cache is down, requests are let through.
"""
from partassist.core.errors import CacheUnavailable
from partassist.storage.cache import KeyValueCache
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


class RateLimiter:

    def __init__(self, cache: KeyValueCache, limit: int = 30, window_seconds: int = 60, enabled: bool = True):
        self.cache = cache
        self.limit = limit
        self.window_seconds = window_seconds
        self.enabled = enabled

    async def allow(self, client_id: str) -> bool:
        """Count one request for ``client_id``; False once the window's quota is spent."""
        if not self.enabled:
            return True
        try:
            count = await self.cache.incr(f"ratelimit:{client_id}", self.window_seconds)
        except CacheUnavailable as e:
            logger.warning(f"⚠️ Rate limit check skipped: {e}")
            return True
        return count <= self.limit

