"""Tests for retry policy and failure classification."""

import pytest

from gctf_runner.errors import (
    CallTimeoutError,
    ProtocolError,
    ServiceUnavailableError,
)
from gctf_runner.models.result import FailureKind
from gctf_runner.policy import RetryPolicy, classify


def test_fixed_strategy_uses_constant_delay() -> None:
    """Every retry waits the same time."""
    policy = RetryPolicy(count=3, delay=0.5)

    assert [policy.delay_for(retry) for retry in (1, 2, 3)] == [0.5, 0.5, 0.5]
    assert policy.total_delay() == pytest.approx(1.5)


def test_exponential_strategy_is_capped() -> None:
    """Delays double per retry up to max_delay."""
    policy = RetryPolicy(count=5, delay=1.0, strategy="exponential", max_delay=5.0)

    assert [policy.delay_for(retry) for retry in range(1, 6)] == [
        1.0,
        2.0,
        4.0,
        5.0,
        5.0,
    ]


def test_disabled_policy() -> None:
    """A count of zero disables retries."""
    assert not RetryPolicy.disabled().enabled
    assert RetryPolicy.disabled().total_delay() == 0
    assert RetryPolicy().enabled


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (ServiceUnavailableError("refused"), FailureKind.NETWORK_UNAVAILABLE),
        (CallTimeoutError("slow"), FailureKind.TIMEOUT),
        (TimeoutError(), FailureKind.TIMEOUT),
        (ProtocolError("bad"), FailureKind.PROTOCOL_ERROR),
        (ValueError("other"), FailureKind.PROTOCOL_ERROR),
    ],
)
def test_classify(error: Exception, kind: FailureKind) -> None:
    """Executor errors map onto the failure taxonomy."""
    assert classify(error) is kind


def test_only_transport_failures_are_retryable() -> None:
    """Network and timeout failures are retried, the others are terminal."""
    assert FailureKind.NETWORK_UNAVAILABLE.retryable
    assert FailureKind.TIMEOUT.retryable
    assert not FailureKind.ASSERTION_MISMATCH.retryable
    assert not FailureKind.PROTOCOL_ERROR.retryable
