"""Resolution of the concurrency level."""

import logging
import os
import subprocess
import sys
from collections.abc import Callable, Sequence

from gctf_runner.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4

type CpuProbe = Callable[[], int | None]


def native_cpu_count() -> int | None:
    """Processor count reported by the interpreter."""
    return os.cpu_count()


def platform_cpu_count() -> int | None:
    """Processor count from the platform's own tooling."""
    command = (
        ["sysctl", "-n", "hw.ncpu"] if sys.platform == "darwin" else ["nproc"]
    )
    try:
        completed = subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("CPU probe %s failed: %s", command[0], e)
        return None
    try:
        return int(completed.stdout.strip())
    except ValueError:
        return None


DEFAULT_PROBES: Sequence[CpuProbe] = (native_cpu_count, platform_cpu_count)


def detect_concurrency(probes: Sequence[CpuProbe] = DEFAULT_PROBES) -> int:
    """Return the first positive processor count any probe reports.

    Falls back to DEFAULT_CONCURRENCY when every probe fails.
    """
    for probe in probes:
        try:
            count = probe()
        except (OSError, ValueError):
            log.debug("CPU probe %s raised", probe.__name__, exc_info=True)
            continue
        if count is not None and count > 0:
            log.debug("CPU probe %s reported %d", probe.__name__, count)
            return count

    log.debug("All CPU probes failed, using default of %d", DEFAULT_CONCURRENCY)
    return DEFAULT_CONCURRENCY


def resolve_concurrency(
    value: str | int | None, probes: Sequence[CpuProbe] = DEFAULT_PROBES
) -> int:
    """Resolve a user-supplied concurrency level.

    Args:
        value: A positive integer, its string form, "auto" or None
        probes: Detection probes used for "auto"

    Returns:
        A positive integer

    Raises:
        ConfigError: If the value is not a positive integer

    """
    if value is None or (isinstance(value, str) and value.strip() == "auto"):
        return detect_concurrency(probes)

    if isinstance(value, bool):
        raise ConfigError(f"Invalid concurrency level: {value!r}")

    try:
        level = int(value)
    except ValueError as e:
        raise ConfigError(f"Invalid concurrency level: {value!r}") from e

    if isinstance(value, str) and not value.strip().isdigit():
        raise ConfigError(f"Invalid concurrency level: {value!r}")
    if level < 1:
        raise ConfigError(f"Concurrency level must be positive, got {level}")

    return level
