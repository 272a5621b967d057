"""Bounded retry for idempotent read-style calls (lookups, embeddings)."""
import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from partassist.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Await ``fn()`` up to ``attempts`` times with a fixed ``delay`` in between.

    The last error propagates once attempts are exhausted. Never wrap the
    completion call with this: it has its own breaker/fallback path.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except retry_on as e:
            logger.warning(f"⚠️ Retry {attempt}/{attempts} failed: {e}")
            if attempt == attempts:
                raise
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")
