"""Execution of a single test job."""

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from gctf_runner.channel import ResultChannel
from gctf_runner.comparison import compare_error, compare_response
from gctf_runner.config import RunConfig
from gctf_runner.definition import TestCase, load_test_case
from gctf_runner.errors import ExecutorError, TestDefinitionError
from gctf_runner.executors.base import CallOutcome, GrpcCall, TestExecutor
from gctf_runner.health import check_reachability
from gctf_runner.models.events import ErrorEvent, ProgressEvent, ResultEvent
from gctf_runner.models.job import TestJob
from gctf_runner.models.result import ExecutionResult, FailureKind, JobStatus
from gctf_runner.output import SynchronizedOutput
from gctf_runner.policy import classify
from gctf_runner.timeout import bounded

log = logging.getLogger(__name__)

UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_.-]")

KIND_TO_STATUS: dict[FailureKind, JobStatus] = {
    FailureKind.NETWORK_UNAVAILABLE: "failed",
    FailureKind.ASSERTION_MISMATCH: "failed",
    FailureKind.TIMEOUT: "timeout",
    FailureKind.PROTOCOL_ERROR: "error",
}

VERBOSE_LABELS: dict[JobStatus, str] = {
    "passed": "PASS",
    "failed": "FAIL",
    "error": "ERROR",
    "timeout": "TIMEOUT",
    "skipped": "SKIP",
}

type HealthCheck = Callable[[str, float], Awaitable[bool]]


@dataclass(frozen=True, kw_only=True)
class Failure:
    """Why one attempt did not pass."""

    kind: FailureKind
    detail: str


@dataclass(frozen=True, kw_only=True)
class Worker:
    """Runs jobs to completion and publishes their outcome.

    Every job ends in exactly one ExecutionResult; job-level errors never
    escape ``execute``.
    """

    executor: TestExecutor
    config: RunConfig
    channel: ResultChannel
    output: SynchronizedOutput
    workspace: Path
    health_check: HealthCheck = check_reachability

    async def execute(self, job: TestJob) -> ExecutionResult:
        """Execute a job, then emit its progress and result events."""
        started_at = datetime.now(UTC)
        clock = time.monotonic()

        try:
            status, failure, retries = await self._run(job)
        except Exception as e:
            log.exception("Unexpected error while running %s", job.path)
            await self.channel.send(
                ErrorEvent(job_id=job.id, message=f"{type(e).__name__}: {e}")
            )
            failure = Failure(kind=FailureKind.PROTOCOL_ERROR, detail=str(e))
            status, retries = "error", 0

        detail = failure.detail if failure else None
        if status == "skipped":
            detail = "Dry run"

        result = build_result(
            job,
            status,
            started_at=started_at,
            duration_ms=int((time.monotonic() - clock) * 1000),
            detail=detail,
            kind=failure.kind if failure else None,
            retries=retries,
        )
        await self.publish(job, result)
        return result

    async def record(
        self, job: TestJob, status: JobStatus, detail: str
    ) -> ExecutionResult:
        """Publish a result for a job that was never executed."""
        result = build_result(
            job, status, started_at=datetime.now(UTC), duration_ms=0, detail=detail
        )
        await self.publish(job, result)
        return result

    async def publish(self, job: TestJob, result: ExecutionResult) -> None:
        """Display the outcome, then send progress followed by the result."""
        if self.config.verbose:
            line = f"{VERBOSE_LABELS[result.status]} {job.display_name} "
            line += f"({result.duration_ms}ms)"
            if result.error_detail and result.is_failure:
                line += f"\n  {result.error_detail}"
            self.output.print_line(line)
        elif not self.config.dry_run:
            self.output.progress(result.symbol)

        self.channel.offer(
            ProgressEvent(job_id=job.id, status=result.status, symbol=result.symbol)
        )
        await self.channel.send(ResultEvent(result=result))

    async def _run(self, job: TestJob) -> tuple[JobStatus, Failure | None, int]:
        try:
            test_case = await load_test_case(Path(job.path), self.config.address)
        except (TestDefinitionError, OSError) as e:
            failure = Failure(kind=FailureKind.PROTOCOL_ERROR, detail=str(e))
            return "error", failure, 0

        call = GrpcCall.from_test_case(test_case)

        if self.config.dry_run:
            self.output.print(self._preview(job, test_case, call))
            return "skipped", None, 0

        scratch = self.workspace / UNSAFE_CHARS_RE.sub("_", job.id)
        scratch.mkdir(parents=True, exist_ok=True)
        timeout = test_case.options.timeout or self.config.timeout
        retry = self.config.retry
        retries = 0

        while True:
            failure = await self._attempt(test_case, call, timeout, scratch)
            if failure is None:
                return "passed", None, retries

            if not failure.kind.retryable or retries >= retry.count:
                return KIND_TO_STATUS[failure.kind], failure, retries

            retries += 1
            delay = retry.delay_for(retries)
            log.info(
                "%s: %s, retry %d/%d in %.1fs",
                job.display_name,
                failure.kind.value,
                retries,
                retry.count,
                delay,
            )
            await asyncio.sleep(delay)

    async def _attempt(
        self, test_case: TestCase, call: GrpcCall, timeout: float, scratch: Path
    ) -> Failure | None:
        if self.config.retry.enabled and not await self.health_check(
            call.address, self.config.health_timeout
        ):
            return Failure(
                kind=FailureKind.NETWORK_UNAVAILABLE,
                detail=f"Service at {call.address} is unreachable",
            )

        try:
            outcome = await self._call(call, timeout, scratch)
        except ExecutorError as e:
            return Failure(kind=classify(e), detail=str(e))

        return evaluate(test_case, outcome)

    async def _call(
        self, call: GrpcCall, timeout: float, scratch: Path
    ) -> CallOutcome:
        if self.executor.enforces_timeout:
            return await self.executor.execute(
                call, timeout=timeout, workspace=scratch
            )
        return await bounded(
            lambda: self.executor.execute(call, timeout=timeout, workspace=scratch),
            timeout,
        )

    def _preview(self, job: TestJob, test_case: TestCase, call: GrpcCall) -> str:
        options = test_case.options
        lines = [
            f"DRY-RUN ▶ File: {job.path}",
            "DRY-RUN ▶ Reproducible command:",
            *(f"  {line}" for line in self.executor.describe(call).splitlines()),
            "Effective OPTIONS:",
            f"  timeout: {options.timeout or self.config.timeout:g}",
            f"  partial: {str(options.partial).lower()}",
            f"  redact: {', '.join(options.redact)}",
            f"  tolerance: {'' if options.tolerance is None else options.tolerance}",
        ]
        if test_case.response:
            lines += ["Expected RESPONSE:", *_indent(test_case.response)]
        if test_case.error:
            lines += ["Expected ERROR:", *_indent(test_case.error)]
        return "\n".join([*lines, "----", ""])


def _indent(text: str) -> list[str]:
    return [f"  {line}" for line in text.splitlines()]


def evaluate(test_case: TestCase, outcome: CallOutcome) -> Failure | None:
    """Check a call outcome against the expected RESPONSE or ERROR section."""
    if outcome.ok:
        if test_case.error:
            return Failure(
                kind=FailureKind.ASSERTION_MISMATCH,
                detail="Expected an error but the call succeeded",
            )
        if test_case.response:
            comparison = compare_response(
                outcome.response, test_case.response, test_case.options
            )
            if not comparison.matched:
                return Failure(
                    kind=FailureKind.ASSERTION_MISMATCH,
                    detail=comparison.detail or "Response mismatch",
                )
        return None

    if test_case.error:
        comparison = compare_error(outcome.response, outcome.status, test_case.error)
        if comparison.matched:
            return None
        return Failure(
            kind=FailureKind.ASSERTION_MISMATCH,
            detail=comparison.detail or "Error mismatch",
        )

    return Failure(
        kind=FailureKind.ASSERTION_MISMATCH,
        detail=f"Call failed with status {outcome.status}: "
        f"{outcome.response.strip()}",
    )


def build_result(
    job: TestJob,
    status: JobStatus,
    *,
    started_at: datetime,
    duration_ms: int,
    detail: str | None = None,
    kind: FailureKind | None = None,
    retries: int = 0,
) -> ExecutionResult:
    """Create the result of a job."""
    return ExecutionResult(
        job_id=job.id,
        path=job.path,
        display_name=job.display_name,
        status=status,
        duration_ms=duration_ms,
        started_at=started_at,
        finished_at=datetime.now(UTC),
        error_detail=detail,
        failure_kind=kind,
        retries=retries,
    )
