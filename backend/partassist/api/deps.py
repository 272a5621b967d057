"""
Process-wide service instances for the HTTP layer, overridable in tests via
``app.dependency_overrides``.
"""
from datetime import timedelta
from functools import lru_cache

from partassist.api.rate_limit import RateLimiter
from partassist.core.config import settings
from partassist.orchestrator.runner import Orchestrator, create_orchestrator
from partassist.storage.cache import KeyValueCache, create_cache
from partassist.storage.catalog import ProductCatalog, create_catalog
from partassist.storage.conversation_log import ConversationLog
from partassist.storage.product_store import ProductStore


@lru_cache
def get_cache() -> KeyValueCache:
    return create_cache(settings)


@lru_cache
def get_product_store() -> ProductStore:
    return ProductStore()


@lru_cache
def get_catalog() -> ProductCatalog:
    return create_catalog(settings, cache=get_cache(), store=get_product_store())


@lru_cache
def get_orchestrator() -> Orchestrator:
    return create_orchestrator(settings, cache=get_cache(), catalog=get_catalog())


@lru_cache
def get_conversation_log() -> ConversationLog:
    return ConversationLog(idle_timeout=timedelta(minutes=settings.CONVERSATION_IDLE_MINUTES))


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return RateLimiter(
        get_cache(),
        limit=settings.RATE_LIMIT_PER_MINUTE,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        enabled=settings.RATE_LIMIT_ENABLED,
    )
