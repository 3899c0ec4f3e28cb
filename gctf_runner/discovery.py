"""Discovery and ordering of test files."""

import logging
import random
from collections.abc import Sequence
from pathlib import Path

from gctf_runner.config import SortMode
from gctf_runner.models.job import TestJob

log = logging.getLogger(__name__)

TEST_FILE_SUFFIX = ".gctf"


def find_test_files(path: Path) -> Sequence[Path]:
    """Return the test file itself, or every test file below a directory.

    Raises:
        FileNotFoundError: If the path does not exist

    """
    if path.is_file():
        return [path]
    if path.is_dir():
        return [p for p in path.rglob(f"*{TEST_FILE_SUFFIX}") if p.is_file()]
    raise FileNotFoundError(f"Test path does not exist: {path}")


def order_files(
    files: Sequence[Path], sort_mode: SortMode, seed: int | None = None
) -> Sequence[Path]:
    """Order files by full path, by file name, or randomly."""
    match sort_mode:
        case "path":
            return sorted(files, key=lambda p: p.as_posix())
        case "name":
            return sorted(files, key=lambda p: (p.name, p.as_posix()))
        case "random":
            shuffled = list(files)
            random.Random(seed).shuffle(shuffled)
            return shuffled


def collect_test_jobs(
    paths: Sequence[Path], sort_mode: SortMode = "path", seed: int | None = None
) -> Sequence[TestJob]:
    """Enumerate test jobs from files and directories.

    Files found through several paths are kept once, at their first position.

    Args:
        paths: Test files or directories to search recursively
        sort_mode: Ordering applied to the files of each path
        seed: Seed for the random ordering

    Returns:
        One job per distinct test file

    Raises:
        FileNotFoundError: If a path does not exist

    """
    seen: set[Path] = set()
    jobs: list[TestJob] = []

    for path in paths:
        for file in order_files(find_test_files(path), sort_mode, seed):
            resolved = file.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            jobs.append(
                TestJob(
                    id=f"{len(jobs) + 1}:{file.as_posix()}",
                    path=str(file),
                    display_name=file.stem,
                )
            )

    log.debug("Discovered %d test file(s)", len(jobs))
    return jobs
