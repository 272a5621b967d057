import threading

import pytest

from partassist.core.errors import CircuitOpenError, ProviderUnavailable
from partassist.llm.breaker import CircuitBreaker, CircuitState

from conftest import ManualClock


class TestCircuitBreaker:

    def make(self, clock=None, threshold=3, reset=30.0):
        return CircuitBreaker(failure_threshold=threshold, reset_timeout_seconds=reset, clock=clock or ManualClock())

    def test_starts_closed(self):
        breaker = self.make()
        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.before_call() is CircuitState.CLOSED

    @pytest.mark.parametrize("failures, expected", [
        (1, CircuitState.CLOSED),
        (2, CircuitState.CLOSED),
        (3, CircuitState.OPEN),
        (5, CircuitState.OPEN),
    ])
    def test_opens_exactly_at_threshold(self, failures, expected):
        breaker = self.make()
        states = [breaker.record_failure() for _ in range(failures)]
        assert states[-1] is expected
        # Never open before the third failure
        assert all(state is CircuitState.CLOSED for state in states[:2])

    def test_open_breaker_fast_fails_until_window_elapses(self):
        clock = ManualClock()
        breaker = self.make(clock)
        for _ in range(3):
            breaker.record_failure()

        clock.advance(29.9)
        with pytest.raises(CircuitOpenError) as exc:
            breaker.before_call()
        assert exc.value.failure_count == 3
        assert exc.value.retry_after_seconds == pytest.approx(0.1)
        assert isinstance(exc.value, ProviderUnavailable)
        assert breaker.state is CircuitState.OPEN

    def test_half_open_after_window_then_closed_on_success(self):
        clock = ManualClock()
        breaker = self.make(clock)
        for _ in range(3):
            breaker.record_failure()

        clock.advance(30)
        assert breaker.before_call() is CircuitState.HALF_OPEN

        breaker.record_success()
        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_half_open_failure_reopens(self):
        clock = ManualClock()
        breaker = self.make(clock)
        for _ in range(3):
            breaker.record_failure()
        clock.advance(31)
        breaker.before_call()

        assert breaker.record_failure() is CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            breaker.before_call()

    def test_success_resets_counter(self):
        breaker = self.make()
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 1

    def test_snapshot(self):
        clock = ManualClock(start=50.0)
        breaker = self.make(clock)
        breaker.record_failure()
        snap = breaker.snapshot()
        assert snap.state is CircuitState.CLOSED
        assert snap.failure_count == 1
        assert snap.last_failure_at == 50.0

    def test_concurrent_failures_are_all_counted(self):
        breaker = self.make(threshold=10_000)

        def hammer():
            for _ in range(500):
                breaker.record_failure()

        threads = [threading.Thread(target=hammer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert breaker.failure_count == 4000
