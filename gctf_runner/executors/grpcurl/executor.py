"""Executor that performs calls through the grpcurl command line tool."""

import asyncio
import json
import logging
import re
import shlex
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from gctf_runner.errors import (
    CallTimeoutError,
    ProtocolError,
    ServiceUnavailableError,
)
from gctf_runner.executors.base import CallOutcome, GrpcCall, TestExecutor
from gctf_runner.executors.grpcurl.config import GrpcurlConfig
from gctf_runner.timeout import Watchdog

DEVNULL = asyncio.subprocess.DEVNULL

log = logging.getLogger(__name__)

CODE_RE = re.compile(r"code = (\d+)")
UNREACHABLE_MARKERS = (
    "failed to dial target host",
    "connection refused",
    "no such host",
)


@dataclass(frozen=True, kw_only=True)
class GrpcurlExecutor(TestExecutor):
    """Runs every call in its own grpcurl child process.

    A child process cannot be stopped by cancelling a coroutine, so the
    executor bounds it with a Watchdog that terminates and then kills it.
    """

    enforces_timeout: ClassVar[bool] = True

    config: GrpcurlConfig

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: GrpcurlConfig
    ) -> AsyncGenerator["GrpcurlExecutor", None]:
        """Create executor; it holds no resources between calls."""
        yield cls(config=config)

    def build_args(self, call: GrpcCall) -> Sequence[str]:
        """Build the grpcurl argument vector for a call."""
        args = [self.config.binary, "-format-error"]

        if call.tls is None:
            args.append("-plaintext")
        else:
            if call.tls.insecure:
                args.append("-insecure")
            if call.tls.ca_cert:
                args += ["-cacert", call.resolve_path(call.tls.ca_cert)]
            if call.tls.cert:
                args += ["-cert", call.resolve_path(call.tls.cert)]
            if call.tls.key:
                args += ["-key", call.resolve_path(call.tls.key)]
            if call.tls.server_name:
                args += ["-servername", call.tls.server_name]

        for header in call.headers:
            args += ["-H", header]

        if call.payload is not None:
            args += ["-d", "@"]

        args += [*self.config.extra_args, call.address, call.endpoint]
        return args

    def describe(self, call: GrpcCall) -> str:
        """Reproducible shell command for the call."""
        command = shlex.join(self.build_args(call))
        if call.payload is None:
            return command
        return f"{command} <<'EOF'\n{call.payload}\nEOF"

    async def execute(
        self, call: GrpcCall, *, timeout: float, workspace: Path
    ) -> CallOutcome:
        """Run grpcurl and interpret its output."""
        args = self.build_args(call)
        request_file = workspace / "request.json"
        request_file.write_text(call.payload or "", encoding="utf-8")

        log.debug("Running %s", shlex.join(args))
        try:
            with request_file.open("rb") as request:
                process = await asyncio.create_subprocess_exec(
                    *args,
                    stdin=request if call.payload is not None else DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
        except FileNotFoundError as e:
            raise ProtocolError(
                f"grpcurl binary not found: {self.config.binary}"
            ) from e

        watchdog = Watchdog(
            timeout=timeout,
            grace_period=self.config.grace_period,
            is_alive=lambda: process.returncode is None,
            graceful=lambda: _send_signal(process.terminate),
            force=lambda: _send_signal(process.kill),
        )
        async with watchdog:
            stdout, stderr = await process.communicate()

        if watchdog.fired:
            raise CallTimeoutError(
                f"grpcurl exceeded {timeout:g}s ({watchdog.state.value})"
            )

        output = stdout.decode(errors="replace")
        errors = stderr.decode(errors="replace")
        (workspace / "response.txt").write_text(output + errors, encoding="utf-8")

        if process.returncode == 0:
            return CallOutcome(response=output, status=0)

        return interpret_failure(output, errors)


def interpret_failure(output: str, errors: str) -> CallOutcome:
    """Turn a non-zero grpcurl exit into an outcome or an executor error."""
    combined = f"{output}\n{errors}".strip()

    for text in (output, errors):
        try:
            document = json.loads(text)
        except json.JSONDecodeError:
            continue
        if isinstance(document, dict) and isinstance(document.get("code"), int):
            return CallOutcome(response=text.strip(), status=document["code"])

    if match := CODE_RE.search(combined):
        lowered = combined.lower()
        if match.group(1) == "14" and any(m in lowered for m in UNREACHABLE_MARKERS):
            raise ServiceUnavailableError(combined)
        return CallOutcome(response=combined, status=int(match.group(1)))

    if any(marker in combined.lower() for marker in UNREACHABLE_MARKERS):
        raise ServiceUnavailableError(combined)

    raise ProtocolError(combined or "grpcurl failed without output")


def _send_signal(send: Callable[[], None]) -> None:
    try:
        send()
    except ProcessLookupError:
        pass
