"""Discovery of installed executors."""

import logging
from importlib.metadata import entry_points
from typing import Any

from gctf_runner.errors import GctfRunnerError
from gctf_runner.executors.manifest import ExecutorManifest

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "gctf_runner.executors"


class ExecutorNotFoundError(GctfRunnerError):
    """No installed executor has the requested key."""


def available_executors() -> list[str]:
    """Keys of the installed executors, sorted."""
    return sorted({entry.name for entry in entry_points(group=ENTRY_POINT_GROUP)})


def load_executor_manifest(key: str) -> ExecutorManifest[Any]:
    """Import the manifest registered under ``key``.

    Raises:
        ExecutorNotFoundError: If no executor with that key is installed

    """
    try:
        entry = entry_points(group=ENTRY_POINT_GROUP)[key]
    except KeyError:
        raise ExecutorNotFoundError(
            f"Unknown executor '{key}', installed: {', '.join(available_executors())}"
        ) from None

    manifest: ExecutorManifest[Any] = entry.load()
    log.debug("Loaded executor %s from %s", key, entry.value)
    return manifest
