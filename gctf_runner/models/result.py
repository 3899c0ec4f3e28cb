"""Models for job execution results."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Literal

JobStatus = Literal["passed", "failed", "error", "timeout", "skipped"]

FAILURE_STATUSES: frozenset[JobStatus] = frozenset({"failed", "error", "timeout"})

STATUS_SYMBOLS: dict[JobStatus, str] = {
    "passed": ".",
    "failed": "F",
    "error": "E",
    "timeout": "T",
    "skipped": "S",
}


class FailureKind(StrEnum):
    """Classification of a job-level failure."""

    NETWORK_UNAVAILABLE = "network_unavailable"
    TIMEOUT = "timeout"
    ASSERTION_MISMATCH = "assertion_mismatch"
    PROTOCOL_ERROR = "protocol_error"

    @property
    def retryable(self) -> bool:
        """Only transport-level failures are worth another attempt."""
        return self in {FailureKind.NETWORK_UNAVAILABLE, FailureKind.TIMEOUT}


@dataclass(frozen=True, kw_only=True)
class ExecutionResult:
    """Outcome of a single job, written once to the aggregator."""

    job_id: str
    path: str
    display_name: str
    status: JobStatus
    duration_ms: int
    started_at: datetime
    finished_at: datetime
    error_detail: str | None = None
    failure_kind: FailureKind | None = None
    retries: int = 0

    @property
    def is_failure(self) -> bool:
        """Whether the job ran and did not pass."""
        return self.status in FAILURE_STATUSES

    @property
    def symbol(self) -> str:
        """Progress symbol for live display."""
        return STATUS_SYMBOLS[self.status]
