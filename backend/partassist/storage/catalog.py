"""
Cached, concurrency-safe product lookups used by the domain handlers.

Results are cached in the key-value cache for a day. Concurrent identical
misses are collapsed by a per-key single-flight lock with a second cache read
inside the lock, so the store is queried once per key. Blocking store and
embedding calls run in worker threads behind the bounded retry wrapper.
"""
import asyncio
import json
from typing import Awaitable, Callable, List, Optional

from pydantic import TypeAdapter, ValidationError

from partassist.core.config import Settings, settings as default_settings
from partassist.core.errors import CacheUnavailable
from partassist.core.models import CompatibilityResult, ProductRef
from partassist.llm.embeddings import EmbeddingClient
from partassist.llm.retry import retry_async
from partassist.storage.cache import KeyValueCache, create_cache
from partassist.storage.product_store import ProductStore
from partassist.utils.locks import KeyedLocks
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

_PRODUCT_LIST = TypeAdapter(List[ProductRef])


class ProductCatalog:

    def __init__(
        self,
        store: ProductStore,
        cache: KeyValueCache,
        embedder: Optional[EmbeddingClient] = None,
        ttl_seconds: int = 86400,
        retry_attempts: int = 3,
        retry_delay: float = 0.5,
        top_k: int = 5,
    ):
        self.store = store
        self.cache = cache
        self.embedder = embedder
        self.ttl_seconds = ttl_seconds
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.top_k = top_k
        self._locks = KeyedLocks()

    # ─── public lookups ──────────────────────────────────────────────────────

    async def find_part(self, part_number: str) -> List[ProductRef]:
        key = f"product:{part_number.strip().upper()}"
        return await self._cached_products(
            key, lambda: self._read(self.store.find_by_part_number, part_number)
        )

    async def find_similar(self, text: str, k: Optional[int] = None) -> List[ProductRef]:
        """Embed ``text`` and return the nearest parts. Needs an embedder."""
        text = " ".join(text.split())
        if not text:
            return []
        if self.embedder is None:
            logger.warning("No embedding client configured, similarity search disabled")
            return []
        k = k or self.top_k
        key = f"product:{'-'.join(text.lower().split())}:{k}"

        async def load() -> List[ProductRef]:
            vector = await self._read(self.embedder.embed, text)
            return await self._read(self.store.search_similar, vector, k)

        return await self._cached_products(key, load)

    async def check_compatibility(self, part_number: str, model_number: str) -> CompatibilityResult:
        key = f"compat:{part_number.upper()}:{model_number.upper()}"
        cached = await self._cache_get(key)
        if cached is not None:
            try:
                logger.info(f"⚡ Cache hit for compatibility {part_number}-{model_number}")
                return CompatibilityResult.model_validate_json(cached)
            except ValidationError:
                logger.warning(f"Ignoring unreadable cache entry {key}")

        async with self._locks.hold(key):
            cached = await self._cache_get(key)
            if cached is not None:
                try:
                    return CompatibilityResult.model_validate_json(cached)
                except ValidationError:
                    pass
            logger.info(f"🧭 Cache miss for compatibility {part_number}-{model_number}")
            result = await self._read(self.store.check_compatibility, part_number, model_number)
            await self._cache_set(key, result.model_dump_json())
            return result

    # ─── helpers ─────────────────────────────────────────────────────────────

    async def _cached_products(
        self, key: str, load: Callable[[], Awaitable[List[ProductRef]]]
    ) -> List[ProductRef]:
        products = self._decode_products(key, await self._cache_get(key))
        if products is not None:
            logger.info(f"⚡ Cache hit for {key}")
            return products

        async with self._locks.hold(key):
            products = self._decode_products(key, await self._cache_get(key))
            if products is not None:
                return products
            logger.info(f"🧭 Cache miss for {key}")
            products = await load()
            await self._cache_set(key, _PRODUCT_LIST.dump_json(products).decode("utf-8"))
            return products

    async def _read(self, fn, *args):
        return await retry_async(
            lambda: asyncio.to_thread(fn, *args),
            attempts=self.retry_attempts,
            delay=self.retry_delay,
        )

    @staticmethod
    def _decode_products(key: str, raw: Optional[str]) -> Optional[List[ProductRef]]:
        if raw is None:
            return None
        try:
            return _PRODUCT_LIST.validate_python(json.loads(raw))
        except (ValueError, ValidationError):
            logger.warning(f"Ignoring unreadable cache entry {key}")
            return None

    async def _cache_get(self, key: str) -> Optional[str]:
        try:
            return await self.cache.get(key)
        except CacheUnavailable as e:
            logger.error(f"⚠️ Cache unavailable, skipping cache for {key}: {e}")
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self.cache.set(key, value, self.ttl_seconds)
        except CacheUnavailable as e:
            logger.error(f"⚠️ Cache unavailable, continuing without cache: {e}")


def create_catalog(config: Settings = default_settings, cache: Optional[KeyValueCache] = None,
                   store: Optional[ProductStore] = None) -> ProductCatalog:
    return ProductCatalog(
        store=store or ProductStore(),
        cache=cache or create_cache(config),
        embedder=EmbeddingClient(config),
        ttl_seconds=config.LOOKUP_CACHE_TTL_SECONDS,
        retry_attempts=config.RETRY_ATTEMPTS,
        retry_delay=config.RETRY_DELAY_SECONDS,
        top_k=config.SIMILARITY_TOP_K,
    )
