"""Wall-clock bounds for calls, with graceful-then-forceful escalation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from types import TracebackType
from typing import Self

from gctf_runner.errors import CallTimeoutError

log = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 1.0


class CancelState(StrEnum):
    """States of the two-phase cancellation state machine."""

    RUNNING = "running"
    GRACEFUL_CANCEL_REQUESTED = "graceful_cancel_requested"
    FORCE_CANCELLED = "force_cancelled"
    FINISHED = "finished"


@dataclass(kw_only=True)
class Watchdog:
    """Timer that escalates termination of a unit of work that overran.

    On expiry the graceful action is invoked, and if the unit is still alive
    after the grace period the forceful one follows. Used where no native
    bounded-execution primitive can stop the work, such as child processes.
    """

    timeout: float
    is_alive: Callable[[], bool]
    graceful: Callable[[], None]
    force: Callable[[], None]
    grace_period: float = DEFAULT_GRACE_PERIOD
    state: CancelState = CancelState.RUNNING
    _task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def fired(self) -> bool:
        """Whether the timeout expired before the work finished."""
        return self.state in {
            CancelState.GRACEFUL_CANCEL_REQUESTED,
            CancelState.FORCE_CANCELLED,
        }

    async def escalate(self) -> None:
        """Request graceful termination, then force it after the grace period."""
        if not self.is_alive():
            return

        self.state = CancelState.GRACEFUL_CANCEL_REQUESTED
        log.debug("Requesting graceful termination")
        self.graceful()

        deadline = asyncio.get_running_loop().time() + self.grace_period
        while self.is_alive() and asyncio.get_running_loop().time() < deadline:
            await asyncio.sleep(min(0.05, self.grace_period))

        if self.is_alive():
            self.state = CancelState.FORCE_CANCELLED
            log.debug(
                "Grace period of %.1fs elapsed, forcing termination", self.grace_period
            )
            self.force()

    async def _guard(self) -> None:
        await asyncio.sleep(self.timeout)
        await self.escalate()

    async def __aenter__(self) -> Self:
        self._task = asyncio.create_task(self._guard())
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        if exc is not None and self.is_alive():
            # The caller was interrupted, do not leave the work behind.
            await asyncio.shield(self.escalate())

        if not self.fired:
            self.state = CancelState.FINISHED


async def bounded[T](
    work: Callable[[], Awaitable[T]], timeout: float
) -> T:
    """Run a coroutine under the native asyncio bound.

    Raises:
        CallTimeoutError: If the coroutine does not finish in time

    """
    try:
        async with asyncio.timeout(timeout):
            return await work()
    except TimeoutError as e:
        raise CallTimeoutError(f"Call exceeded {timeout:g}s") from e
