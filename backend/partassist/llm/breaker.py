"""Circuit breaker guarding the primary completion provider."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from partassist.core.errors import CircuitOpenError
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time copy of the breaker state."""

    state: CircuitState
    failure_count: int
    last_failure_at: Optional[float]


class CircuitBreaker:
    """Process-wide breaker shared by every concurrent completion call.

    All transitions happen under one lock, so concurrent failures never lose
    an increment of the failure counter.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 3,
        reset_timeout_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._failure_threshold = max(1, int(failure_threshold))
        self._reset_timeout_seconds = float(reset_timeout_seconds)
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def snapshot(self) -> BreakerSnapshot:
        with self._lock:
            return BreakerSnapshot(self._state, self._failure_count, self._last_failure_at)

    def before_call(self) -> CircuitState:
        """Gate a call: raise while open, move to HALF_OPEN once the window elapsed."""
        with self._lock:
            if self._state is CircuitState.OPEN:
                elapsed = self._clock() - (self._last_failure_at or 0.0)
                if elapsed < self._reset_timeout_seconds:
                    raise CircuitOpenError(
                        retry_after_seconds=self._reset_timeout_seconds - elapsed,
                        failure_count=self._failure_count,
                    )
                self._state = CircuitState.HALF_OPEN
                logger.info("🧭 Circuit half-open, probing primary provider")
            return self._state

    def record_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.info(f"🔌 Circuit closed again (was {self._state.value})")
            self._failure_count = 0
            self._state = CircuitState.CLOSED

    def record_failure(self) -> CircuitState:
        with self._lock:
            self._failure_count += 1
            self._last_failure_at = self._clock()
            if self._failure_count >= self._failure_threshold and self._state is not CircuitState.OPEN:
                self._state = CircuitState.OPEN
                logger.error(
                    f"🚨 Circuit breaker TRIPPED after {self._failure_count} consecutive failures"
                )
            return self._state
