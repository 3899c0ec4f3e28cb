"""Models for discovered test jobs."""

from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class TestJob:
    """One unit of test work: a single test file to execute and score."""

    __test__ = False

    id: str
    path: str
    display_name: str
