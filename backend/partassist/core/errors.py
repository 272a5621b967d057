"""
Exception taxonomy for the orchestration core.

Nothing here is fatal to the process: every error has a recovery point.
ProviderError is recovered by the fallback provider, ProviderUnavailable and
CircuitOpenError by the caller's static reply, ClassificationParseError by the
default intent, CacheUnavailable by stateless behaviour and HandlerFailure by
the orchestrator's apology response.
"""


class PartAssistError(Exception):
    """Base class for all recoverable assistant errors."""


class ProviderError(PartAssistError):
    """A single completion/embedding provider failed (network, timeout, status, body)."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderUnavailable(PartAssistError):
    """Every completion path for this call has been exhausted."""


class CircuitOpenError(ProviderUnavailable):
    """Raised without any network call while the circuit breaker is open."""

    def __init__(self, retry_after_seconds: float, failure_count: int):
        self.retry_after_seconds = float(retry_after_seconds)
        self.failure_count = int(failure_count)
        super().__init__(
            f"AI temporarily unavailable (circuit open, retry in {self.retry_after_seconds:.1f}s)"
        )


class ClassificationParseError(PartAssistError):
    """Structured classifier output could not be parsed into an Intent."""


class CacheUnavailable(PartAssistError):
    """The key-value cache could not be reached."""


class HandlerFailure(PartAssistError):
    """A domain handler raised an unexpected error."""

    def __init__(self, handler: str, cause: BaseException):
        self.handler = handler
        self.cause = cause
        super().__init__(f"{handler} failed: {cause}")
