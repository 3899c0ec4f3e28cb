"""Events carried from workers to the aggregator."""

from dataclasses import dataclass

from gctf_runner.models.result import ExecutionResult, JobStatus


@dataclass(frozen=True, kw_only=True)
class ProgressEvent:
    """Lightweight live-display notification; may be dropped."""

    job_id: str
    status: JobStatus
    symbol: str


@dataclass(frozen=True, kw_only=True)
class ResultEvent:
    """Carries the single final result of a job."""

    result: ExecutionResult

    @property
    def job_id(self) -> str:
        """Job the result belongs to."""
        return self.result.job_id


@dataclass(frozen=True, kw_only=True)
class ErrorEvent:
    """Diagnostic for an unexpected exception converted inside a worker."""

    job_id: str
    message: str


type ChannelEvent = ProgressEvent | ResultEvent | ErrorEvent
