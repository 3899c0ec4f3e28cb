"""Retry policy and failure classification."""

from typing import Literal

from pydantic import Field

from gctf_runner.errors import CallTimeoutError, ServiceUnavailableError
from gctf_runner.models.base import Model
from gctf_runner.models.result import FailureKind

DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_RETRY_DELAY = 30.0


class RetryPolicy(Model):
    """How many times a transient failure is retried, and how long to wait."""

    count: int = Field(default=DEFAULT_RETRY_COUNT, ge=0)
    delay: float = Field(default=DEFAULT_RETRY_DELAY, ge=0)
    strategy: Literal["fixed", "exponential"] = "fixed"
    multiplier: float = Field(default=DEFAULT_BACKOFF_MULTIPLIER, ge=1)
    max_delay: float = Field(default=DEFAULT_MAX_RETRY_DELAY, ge=0)

    @property
    def enabled(self) -> bool:
        """Whether retries, and therefore pre-flight health checks, are on."""
        return self.count > 0

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before the given retry (1-based)."""
        if self.strategy == "fixed":
            return self.delay
        return min(self.delay * self.multiplier ** (retry - 1), self.max_delay)

    def total_delay(self) -> float:
        """Upper bound of time spent sleeping between attempts of one job."""
        return sum(self.delay_for(retry) for retry in range(1, self.count + 1))

    @classmethod
    def disabled(cls) -> "RetryPolicy":
        """Policy that never retries."""
        return cls(count=0)


def classify(error: Exception) -> FailureKind:
    """Map an executor error onto the failure taxonomy.

    Anything that is neither a connectivity problem nor a timeout is treated
    as a protocol error, which is never retried.
    """
    match error:
        case ServiceUnavailableError():
            return FailureKind.NETWORK_UNAVAILABLE
        case CallTimeoutError() | TimeoutError():
            return FailureKind.TIMEOUT
        case _:
            return FailureKind.PROTOCOL_ERROR
