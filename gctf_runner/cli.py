"""CLI entry point for the gRPC test runner."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from gctf_runner.concurrency import resolve_concurrency
from gctf_runner.config import RunConfig, build_config
from gctf_runner.errors import ConfigError, GctfRunnerError
from gctf_runner.executors.loading import (
    available_executors,
    load_executor_manifest,
)
from gctf_runner.models.result import STATUS_SYMBOLS, ExecutionResult
from gctf_runner.models.stats import AggregateStats
from gctf_runner.reports import REPORT_FORMATS, ReportEmitter, ReportFormat
from gctf_runner.scheduler import Scheduler

DEFAULT_EXECUTOR = "grpcurl"


def log_results_summary(
    log: logging.Logger,
    stats: AggregateStats,
    results: Sequence[ExecutionResult],
    config: RunConfig,
) -> None:
    """Log a formatted summary of the run."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for result in results:
        if result.status == "passed" and not config.verbose:
            continue
        log.info(
            "%s %s: %s (%dms)",
            STATUS_SYMBOLS[result.status],
            result.display_name,
            result.status,
            result.duration_ms,
        )
        if result.retries:
            log.info("  Retries: %d", result.retries)
        if result.error_detail and result.is_failure:
            log.info("  Message: %s", result.error_detail)

    log.info(
        "Total: %d, Passed: %d, Failed: %d (errors: %d, timeouts: %d), Skipped: %d",
        stats.total,
        stats.passed,
        stats.failed,
        stats.errors,
        stats.timeouts,
        stats.skipped,
    )
    log.info("Duration: %dms", stats.duration_ms)
    if config.concurrency == 1:
        log.info("Mode: Sequential (1 worker)")
    else:
        log.info("Mode: Parallel (%d workers)", config.concurrency)

    if config.dry_run:
        log.info("Success rate: N/A (dry-run mode)")
    elif stats.success_rate is None:
        log.info("Success rate: N/A (no tests executed)")
    else:
        log.info(
            "Success rate: %.0f%% (%d/%d executed)",
            stats.success_rate,
            stats.passed,
            stats.executed,
        )


def build_run_config(args: argparse.Namespace) -> RunConfig:
    """Build the run configuration from parsed arguments.

    Raises:
        ConfigError: If any setting is invalid

    """
    retry: dict[str, Any] = {
        "count": 0 if args.no_retry else args.retry,
        "delay": args.retry_delay,
        "strategy": args.retry_strategy,
    }
    values: dict[str, Any] = {
        "concurrency": resolve_concurrency(args.parallel),
        "timeout": args.timeout,
        "retry": retry,
        "fail_fast": args.fail_fast,
        "dry_run": args.dry_run,
        "verbose": args.verbose,
        "sort": args.sort,
        "seed": args.seed,
    }
    if args.address:
        values["address"] = args.address
    return build_config(**values)


def validate_report_options(
    log_format: ReportFormat | None, log_output: Path | None
) -> None:
    """Check that report format and output are given together.

    Raises:
        ConfigError: If only one of them is given

    """
    if log_format and log_output is None:
        raise ConfigError("--log-output is required when using --log-format")
    if log_output is not None and not log_format:
        raise ConfigError("--log-format is required when using --log-output")


async def run(
    paths: Sequence[Path],
    config: RunConfig,
    executor_key: str = DEFAULT_EXECUTOR,
    executor_config_json: str = "{}",
    log_format: ReportFormat | None = None,
    log_output: Path | None = None,
) -> int:
    """Run the tests below ``paths`` and return the exit code."""
    log = logging.getLogger("gctf_runner")

    log.info("Loading executor: %s", executor_key)
    try:
        manifest = load_executor_manifest(executor_key)
        executor_config = manifest.parse_config(executor_config_json)
    except GctfRunnerError as e:
        log.error("%s", e)
        return 1

    async with manifest.executor_factory(executor_config) as executor:
        scheduler = Scheduler(executor=executor, config=config)
        try:
            stats = await scheduler.run_paths(paths)
        except FileNotFoundError as e:
            log.error("%s", e)
            return 1
        except GctfRunnerError as e:
            log.error("Run aborted: %s", e)
            return 1

    if stats.total == 0:
        log.info("No test files found")
        return 0

    results = scheduler.aggregator.results()
    log_results_summary(log, stats, results, config)

    if log_format and log_output is not None:
        ReportEmitter().emit(stats, results, log_format, log_output)

    if config.dry_run:
        return 0
    return 1 if stats.has_failures else 0


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gctf-runner", description="Run .gctf gRPC test files"
    )
    parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Test files or directories searched recursively for .gctf files",
    )
    parser.add_argument(
        "--parallel",
        default="auto",
        help="Number of concurrent workers, or 'auto' to use the CPU count",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Timeout in seconds of a single call",
    )
    parser.add_argument(
        "--retry",
        type=int,
        default=3,
        help="Retries of network failures and timeouts",
    )
    parser.add_argument(
        "--retry-delay",
        type=float,
        default=1.0,
        help="Seconds to wait before a retry",
    )
    parser.add_argument(
        "--retry-strategy",
        choices=("fixed", "exponential"),
        default="fixed",
        help="Delay between retries",
    )
    parser.add_argument(
        "--no-retry",
        action="store_true",
        help="Disable retries and pre-flight health checks",
    )
    parser.add_argument(
        "--sort",
        choices=("path", "name", "random"),
        default="path",
        help="Order of test files",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for --sort random",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the calls that would be made without executing them",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop at the first failure (sequential runs only)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Print one line per test and enable debug logging",
    )
    parser.add_argument(
        "--log-format",
        choices=REPORT_FORMATS,
        default=None,
        help="Report format",
    )
    parser.add_argument(
        "--log-output",
        type=Path,
        default=None,
        help="Report file, required with --log-format",
    )
    parser.add_argument(
        "--executor",
        default=DEFAULT_EXECUTOR,
        help=f"Executor key, one of: {', '.join(available_executors())}",
    )
    parser.add_argument(
        "--executor-config",
        default="{}",
        help="JSON configuration for the executor",
    )
    parser.add_argument(
        "--address",
        default=None,
        help="Default address for test files without an ADDRESS section",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    log = logging.getLogger("gctf_runner")

    try:
        validate_report_options(args.log_format, args.log_output)
        config = build_run_config(args)
    except ConfigError as e:
        log.error("%s", e)
        sys.exit(1)

    exit_code = asyncio.run(
        run(
            paths=args.paths,
            config=config,
            executor_key=args.executor,
            executor_config_json=args.executor_config,
            log_format=args.log_format,
            log_output=args.log_output,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
