"""Scheduling of test jobs across a bounded pool of workers."""

import asyncio
import logging
import math
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from gctf_runner.aggregator import Aggregator
from gctf_runner.channel import ResultChannel
from gctf_runner.config import RunConfig
from gctf_runner.definition import read_timeout
from gctf_runner.discovery import collect_test_jobs
from gctf_runner.errors import AggregationError, ChannelError, ConfigError
from gctf_runner.executors.base import TestExecutor
from gctf_runner.health import check_reachability
from gctf_runner.models.events import ErrorEvent, ProgressEvent, ResultEvent
from gctf_runner.models.job import TestJob
from gctf_runner.models.result import ExecutionResult
from gctf_runner.models.stats import AggregateStats
from gctf_runner.output import SynchronizedOutput
from gctf_runner.worker import HealthCheck, Worker

log = logging.getLogger(__name__)

EVENTS_PER_JOB = 3
RUN_DIR_PREFIX = "gctf-run-"


@dataclass(kw_only=True)
class Scheduler:
    """Runs jobs sequentially or on a pool of concurrent workers.

    Sequential runs keep discovery order and may stop at the first failure,
    recording every remaining job as skipped. Parallel runs never fail fast: a
    failing job does not cancel jobs already running or still queued.
    """

    executor: TestExecutor
    config: RunConfig
    output: SynchronizedOutput = field(default_factory=SynchronizedOutput)
    health_check: HealthCheck = check_reachability
    peak_concurrency: int = 0
    last_run_dir: Path | None = None
    aggregator: Aggregator = field(default_factory=Aggregator)
    _active: int = 0

    async def run(
        self,
        jobs: Sequence[TestJob],
        concurrency: int | None = None,
        fail_fast: bool | None = None,
    ) -> AggregateStats:
        """Execute every job and return the frozen statistics.

        Args:
            jobs: Jobs in dispatch order
            concurrency: Number of concurrent workers, defaults to the config
            fail_fast: Stop at the first failure (sequential runs only)

        Raises:
            ConfigError: If the concurrency level is not a positive integer
            ChannelError: If the result reader fails
            AggregationError: If the aggregator rejects a result

        """
        concurrency = self.config.concurrency if concurrency is None else concurrency
        if isinstance(concurrency, bool) or not isinstance(concurrency, int):
            raise ConfigError(f"Invalid concurrency level: {concurrency!r}")
        if concurrency < 1:
            raise ConfigError(
                f"Concurrency level must be positive, got {concurrency}"
            )
        fail_fast = self.config.fail_fast if fail_fast is None else fail_fast

        self.peak_concurrency = 0
        self.aggregator = aggregator = Aggregator()
        aggregator.register(jobs)

        if not jobs:
            return aggregator.finalize()

        channel = ResultChannel(
            capacity=self.config.channel_capacity,
            poll_interval=self.config.poll_interval,
        )
        timeout = self.longest_timeout(jobs)
        budget = self.config.run_budget(len(jobs), timeout)
        max_iterations = self.max_reader_iterations(len(jobs), budget, timeout)

        if concurrency == 1:
            log.info("Running %d test(s) sequentially...", len(jobs))
        else:
            log.info(
                "Running %d test(s) in parallel (jobs: %d)...", len(jobs), concurrency
            )

        with tempfile.TemporaryDirectory(prefix=RUN_DIR_PREFIX) as run_dir:
            self.last_run_dir = Path(run_dir)
            worker = Worker(
                executor=self.executor,
                config=self.config,
                channel=channel,
                output=self.output,
                workspace=Path(run_dir),
                health_check=self.health_check,
            )
            async with self.output:
                try:
                    async with asyncio.TaskGroup() as tg:
                        tg.create_task(
                            self._consume(channel, aggregator, max_iterations),
                            name="result-reader",
                        )
                        tg.create_task(
                            self._dispatch(
                                worker, channel, jobs, concurrency, fail_fast, budget
                            ),
                            name="dispatcher",
                        )
                except ExceptionGroup as group:
                    error = first_error(group)
                    log.error("Aborting run: %s", error)
                    raise error from group

        return aggregator.finalize()

    async def run_paths(self, paths: Sequence[Path]) -> AggregateStats:
        """Discover the test files below ``paths`` and run them.

        Raises:
            FileNotFoundError: If a path does not exist

        """
        jobs = collect_test_jobs(paths, self.config.sort, self.config.seed)
        return await self.run(jobs)

    def longest_timeout(self, jobs: Sequence[TestJob]) -> float:
        """Longest call timeout of any job, OPTIONS overrides included."""
        overrides = [read_timeout(Path(job.path)) for job in jobs]
        return max([self.config.timeout, *(t for t in overrides if t is not None)])

    def max_reader_iterations(
        self, total: int, budget: float, timeout: float | None = None
    ) -> int:
        """Iteration cap of the result reader for a run of ``total`` jobs.

        Covers every event the workers can send plus idle polls for twice the
        time the run may legitimately take.
        """
        run_time = budget + self.config.job_budget(timeout)
        idle_polls = math.ceil(2 * run_time / self.config.poll_interval)
        return EVENTS_PER_JOB * total + idle_polls + 1

    async def _dispatch(
        self,
        worker: Worker,
        channel: ResultChannel,
        jobs: Sequence[TestJob],
        concurrency: int,
        fail_fast: bool,
        budget: float,
    ) -> None:
        deadline = asyncio.get_running_loop().time() + budget
        if concurrency == 1:
            await self._run_sequential(worker, jobs, fail_fast, deadline)
        else:
            await self._run_parallel(worker, jobs, concurrency, deadline)
        await channel.close()

    async def _run_sequential(
        self,
        worker: Worker,
        jobs: Sequence[TestJob],
        fail_fast: bool,
        deadline: float,
    ) -> None:
        for index, job in enumerate(jobs):
            if self._over_budget(deadline):
                await self._abort_remaining(worker, jobs[index:])
                return

            result = await self._execute(worker, job)

            if fail_fast and result.is_failure:
                remaining = jobs[index + 1 :]
                if remaining:
                    log.error(
                        "Fail-fast: %s %s, skipping %d remaining test(s)",
                        job.display_name,
                        result.status,
                        len(remaining),
                    )
                for skipped in remaining:
                    await worker.record(skipped, "skipped", "Skipped by fail-fast")
                return

    async def _run_parallel(
        self,
        worker: Worker,
        jobs: Sequence[TestJob],
        concurrency: int,
        deadline: float,
    ) -> None:
        queue: asyncio.Queue[TestJob] = asyncio.Queue()
        for job in jobs:
            queue.put_nowait(job)

        async def lane() -> None:
            while True:
                try:
                    job = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if self._over_budget(deadline):
                    await self._abort_remaining(worker, [job])
                    continue
                await self._execute(worker, job)

        async with asyncio.TaskGroup() as tg:
            for index in range(min(concurrency, len(jobs))):
                tg.create_task(lane(), name=f"worker-{index + 1}")

    async def _execute(self, worker: Worker, job: TestJob) -> ExecutionResult:
        self._active += 1
        self.peak_concurrency = max(self.peak_concurrency, self._active)
        try:
            return await worker.execute(job)
        finally:
            self._active -= 1

    def _over_budget(self, deadline: float) -> bool:
        return asyncio.get_running_loop().time() > deadline

    async def _abort_remaining(self, worker: Worker, jobs: Sequence[TestJob]) -> None:
        log.error(
            "Global run timeout exceeded, aborting %d remaining test(s)", len(jobs)
        )
        for job in jobs:
            await worker.record(job, "error", "Aborted by global timeout")

    async def _consume(
        self, channel: ResultChannel, aggregator: Aggregator, max_iterations: int
    ) -> None:
        async for event in channel.drain(max_iterations):
            match event:
                case ProgressEvent():
                    aggregator.on_progress(event)
                case ResultEvent():
                    aggregator.on_result(event.result)
                case ErrorEvent():
                    aggregator.on_error(event)


def first_error(group: BaseExceptionGroup[Exception]) -> Exception:
    """Innermost first exception of a possibly nested exception group.

    Channel and aggregation failures are preferred, since they are the reason
    the run had to stop.
    """
    leaves: list[Exception] = []

    def collect(current: BaseExceptionGroup[Exception]) -> None:
        for exc in current.exceptions:
            if isinstance(exc, BaseExceptionGroup):
                collect(exc)
            else:
                leaves.append(exc)

    collect(group)
    for exc in leaves:
        if isinstance(exc, ChannelError | AggregationError):
            return exc
    return leaves[0]
