"""Abstract base class for test executors."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from gctf_runner.definition import TestCase, TlsConfig


@dataclass(frozen=True, kw_only=True)
class GrpcCall:
    """Everything an executor needs to perform one call."""

    address: str
    endpoint: str
    payload: str | None
    headers: Sequence[str] = ()
    tls: TlsConfig | None = None
    source: str = ""

    @classmethod
    def from_test_case(cls, test_case: TestCase) -> "GrpcCall":
        """Build the call described by a parsed test file."""
        return cls(
            address=test_case.address,
            endpoint=test_case.endpoint,
            payload=test_case.request,
            headers=tuple(test_case.headers),
            tls=test_case.tls,
            source=test_case.source,
        )

    def resolve_path(self, path: str) -> str:
        """Resolve a path relative to the directory of the test file."""
        candidate = Path(path)
        if candidate.is_absolute() or not self.source:
            return path
        return str(Path(self.source).parent / candidate)


@dataclass(frozen=True, kw_only=True)
class CallOutcome:
    """Raw result of a call. A status of 0 means the call succeeded."""

    response: str
    status: int = 0

    @property
    def ok(self) -> bool:
        """Whether the service answered without an error status."""
        return self.status == 0


@dataclass(frozen=True, kw_only=True)
class TestExecutor(ABC):
    """Performs calls against the service under test.

    Executors with ``enforces_timeout`` set bound the call themselves with the
    timeout they are given. Others are bounded by the worker.
    """

    __test__ = False

    enforces_timeout: ClassVar[bool] = False

    @abstractmethod
    async def execute(
        self, call: GrpcCall, *, timeout: float, workspace: Path
    ) -> CallOutcome:
        """Perform the call.

        Args:
            call: Call to perform
            timeout: Wall-clock bound in seconds
            workspace: Scratch directory private to this job

        Returns:
            The service's answer

        Raises:
            ServiceUnavailableError: If the service cannot be reached
            CallTimeoutError: If the call exceeds the timeout
            ProtocolError: If the call or its response is malformed

        """

    def describe(self, call: GrpcCall) -> str:
        """Human-readable form of the call, shown in dry-run mode."""
        return f"{call.address} {call.endpoint}"
