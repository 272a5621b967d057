"""
Per-user session context on top of the key-value cache.

Every operation is best-effort: when the cache is unreachable reads return an
empty context and writes are dropped, so the assistant keeps answering
(statelessly) instead of failing the request.
"""
import json

from pydantic import ValidationError

from partassist.core.errors import CacheUnavailable
from partassist.core.models import SessionContext
from partassist.storage.cache import KeyValueCache
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

CONTEXT_KEY_PREFIX = "context:"


class SessionContextStore:

    def __init__(self, cache: KeyValueCache, ttl_seconds: int = 3600):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{CONTEXT_KEY_PREFIX}{user_id}"

    async def get(self, user_id: str) -> SessionContext:
        """Load context; empty when absent, expired, corrupt or unreachable."""
        try:
            raw = await self.cache.get(self._key(user_id))
        except CacheUnavailable as e:
            logger.error(f"⚠️ Cache unavailable, continuing without context for {user_id}: {e}")
            return SessionContext()

        if not raw:
            return SessionContext()

        try:
            return SessionContext.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding unreadable context for {user_id}: {e}")
            return SessionContext()

    async def set(self, user_id: str, context: SessionContext) -> None:
        """Overwrite the whole context and restart its expiry window."""
        payload = json.dumps(context.model_dump(mode="json", exclude_none=True))
        try:
            await self.cache.set(self._key(user_id), payload, self.ttl_seconds)
            logger.debug(f"💾 Context saved for {user_id}: {payload}")
        except CacheUnavailable as e:
            logger.error(f"⚠️ Cache unavailable, context for {user_id} not saved: {e}")

    async def clear(self, user_id: str) -> None:
        try:
            await self.cache.delete(self._key(user_id))
            logger.info(f"🧹 Context cleared for {user_id}")
        except CacheUnavailable as e:
            logger.error(f"⚠️ Cache unavailable, context for {user_id} not cleared: {e}")
