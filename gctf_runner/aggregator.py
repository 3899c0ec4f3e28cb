"""Single owner of run-wide statistics and results."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from gctf_runner.errors import AggregationError
from gctf_runner.models.events import ErrorEvent, ProgressEvent
from gctf_runner.models.job import TestJob
from gctf_runner.models.result import ExecutionResult
from gctf_runner.models.stats import AggregateStats

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class Aggregator:
    """Accumulates one ExecutionResult per registered job.

    Only the aggregator mutates its counters. Other components read
    snapshots through ``stats()``, or the frozen snapshot from ``finalize()``.
    """

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    _jobs: dict[str, TestJob] = field(default_factory=dict, repr=False)
    _results: dict[str, ExecutionResult] = field(default_factory=dict, repr=False)
    _progressed: set[str] = field(default_factory=set, repr=False)
    _diagnostics: list[ErrorEvent] = field(default_factory=list, repr=False)
    _passed: int = 0
    _failed: int = 0
    _errors: int = 0
    _timeouts: int = 0
    _skipped: int = 0
    _frozen: AggregateStats | None = None

    @property
    def finalized(self) -> bool:
        """Whether the run has been frozen."""
        return self._frozen is not None

    @property
    def progressed(self) -> int:
        """Number of jobs whose progress was observed."""
        return len(self._progressed)

    def register(self, jobs: Iterable[TestJob]) -> None:
        """Declare the jobs a result is expected for."""
        if self.finalized:
            raise AggregationError("Cannot register jobs after finalize()")
        for job in jobs:
            if job.id in self._jobs:
                raise AggregationError(f"Job {job.id} registered twice")
            self._jobs[job.id] = job

    def on_progress(self, event: ProgressEvent) -> None:
        """Record live progress; has no effect on the counters."""
        if not self.finalized:
            self._progressed.add(event.job_id)

    def on_error(self, event: ErrorEvent) -> None:
        """Keep a worker diagnostic for the report."""
        log.error("Worker error in %s: %s", event.job_id, event.message)
        self._diagnostics.append(event)

    def on_result(self, result: ExecutionResult) -> None:
        """Record the single result of a job.

        Raises:
            AggregationError: After finalize(), for unknown jobs, or for a
                second result of the same job

        """
        if self.finalized:
            log.error("Result for %s received after finalize()", result.job_id)
            raise AggregationError(
                f"Result for {result.job_id} received after finalize()"
            )
        if result.job_id not in self._jobs:
            log.error("Result for unknown job %s", result.job_id)
            raise AggregationError(f"Result for unknown job {result.job_id}")
        if result.job_id in self._results:
            log.error("Duplicate result for job %s", result.job_id)
            raise AggregationError(f"Duplicate result for job {result.job_id}")

        self._results[result.job_id] = result
        match result.status:
            case "passed":
                self._passed += 1
            case "skipped":
                self._skipped += 1
            case "error":
                self._failed += 1
                self._errors += 1
            case "timeout":
                self._failed += 1
                self._timeouts += 1
            case "failed":
                self._failed += 1

    def stats(self) -> AggregateStats:
        """Return a snapshot of the counters, frozen once finalized."""
        if self._frozen is not None:
            return self._frozen
        return self._snapshot(end_time=None)

    def finalize(self) -> AggregateStats:
        """Freeze the statistics; idempotent.

        Jobs that never produced a result are recorded as errors so every
        registered job ends with exactly one result.
        """
        if self._frozen is not None:
            return self._frozen

        now = datetime.now(UTC)
        missing = [
            job for job_id, job in self._jobs.items() if job_id not in self._results
        ]
        for job in missing:
            log.error("No result received for %s", job.path)
            self.on_result(
                ExecutionResult(
                    job_id=job.id,
                    path=job.path,
                    display_name=job.display_name,
                    status="error",
                    duration_ms=0,
                    started_at=now,
                    finished_at=now,
                    error_detail="No result received",
                )
            )

        self._frozen = self._snapshot(end_time=now)
        log.debug("Aggregator finalized: %s", self._frozen.render())
        return self._frozen

    def results(self) -> Sequence[ExecutionResult]:
        """Results in job registration order."""
        return [
            self._results[job_id] for job_id in self._jobs if job_id in self._results
        ]

    def diagnostics(self) -> Sequence[ErrorEvent]:
        """Worker diagnostics in the order they were received."""
        return list(self._diagnostics)

    def result_for(self, job_id: str) -> ExecutionResult | None:
        """Result of one job, if received."""
        return self._results.get(job_id)

    def by_status(self) -> Mapping[str, Sequence[ExecutionResult]]:
        """Results grouped by status."""
        grouped: dict[str, list[ExecutionResult]] = {}
        for result in self.results():
            grouped.setdefault(result.status, []).append(result)
        return grouped

    def _snapshot(self, end_time: datetime | None) -> AggregateStats:
        return AggregateStats(
            total=len(self._jobs),
            executed=self._passed + self._failed,
            passed=self._passed,
            failed=self._failed,
            skipped=self._skipped,
            errors=self._errors,
            timeouts=self._timeouts,
            start_time=self.start_time,
            end_time=end_time,
            frozen=end_time is not None,
        )
