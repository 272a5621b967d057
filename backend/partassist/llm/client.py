"""
Resilient completion client: primary provider behind a circuit breaker, with
one fallback attempt on the secondary provider.
"""
import asyncio
from typing import Optional, Sequence

from partassist.core.config import Settings, settings as default_settings
from partassist.core.errors import CircuitOpenError, ProviderError, ProviderUnavailable
from partassist.core.models import CompletionConfig, ConversationTurn
from partassist.llm.breaker import CircuitBreaker
from partassist.llm.providers import CompletionProvider, build_messages, build_provider
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


class ResilientCompletionClient:
    """
    ``complete`` tries the primary once, then the secondary once. No blind
    retries here: a degraded primary would otherwise double the latency.

    Any successful answer, primary or fallback, closes the breaker and clears
    its failure count. With ``fallback_resets_breaker`` off the breaker tracks
    the primary alone, and while it is open calls go straight to the secondary.
    """

    def __init__(
        self,
        primary: CompletionProvider,
        secondary: CompletionProvider,
        breaker: Optional[CircuitBreaker] = None,
        history_window: int = 5,
        fallback_resets_breaker: bool = True,
    ):
        self.primary = primary
        self.secondary = secondary
        self.breaker = breaker or CircuitBreaker()
        self.history_window = history_window
        self.fallback_resets_breaker = fallback_resets_breaker

    async def complete(
        self,
        prompt: str,
        history: Optional[Sequence[ConversationTurn]] = None,
        config: Optional[CompletionConfig] = None,
    ) -> str:
        """
        Generate text for ``prompt``.

        Raises:
            CircuitOpenError: breaker is open, the reset window has not elapsed
                and fallback successes reset the breaker
            ProviderUnavailable: both providers failed
        """
        config = config or CompletionConfig()
        messages = build_messages(prompt, history, config, self.history_window)

        try:
            self.breaker.before_call()
        except CircuitOpenError:
            if self.fallback_resets_breaker:
                # Both providers are considered down; no network call
                raise
            logger.info(f"🔀 Primary circuit open, routing to {self.secondary.name}")
            return await self._fallback(messages, config)

        try:
            result = await self._call(self.primary, messages, config)
            self.breaker.record_success()
            return result
        except ProviderError as e:
            state = self.breaker.record_failure()
            logger.warning(
                f"⚠️ {self.primary.name} failed ({e}), falling back to {self.secondary.name} "
                f"| breaker={state.value}"
            )

        result = await self._fallback(messages, config)
        if self.fallback_resets_breaker:
            self.breaker.record_success()
        return result

    async def _fallback(self, messages, config: CompletionConfig) -> str:
        try:
            result = await self._call(self.secondary, messages, config)
        except ProviderError as e:
            logger.error(f"❌ Both {self.primary.name} and {self.secondary.name} failed: {e}")
            raise ProviderUnavailable(
                f"{self.primary.name} and {self.secondary.name} both failed"
            ) from e
        return result

    async def _call(self, provider: CompletionProvider, messages, config: CompletionConfig) -> str:
        """Run a blocking provider call in a worker thread with a hard deadline."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(provider.complete, messages, config),
                timeout=provider.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(provider.name, f"no response within {provider.timeout}s") from e


def create_completion_client(config: Settings = default_settings) -> ResilientCompletionClient:
    breaker = CircuitBreaker(
        failure_threshold=config.CIRCUIT_BREAKER_THRESHOLD,
        reset_timeout_seconds=config.CIRCUIT_BREAKER_RESET_SECONDS,
    )
    return ResilientCompletionClient(
        primary=build_provider(config.PRIMARY_PROVIDER, config),
        secondary=build_provider(config.SECONDARY_PROVIDER, config),
        breaker=breaker,
        history_window=config.HISTORY_WINDOW,
        fallback_resets_breaker=config.FALLBACK_RESETS_BREAKER,
    )
