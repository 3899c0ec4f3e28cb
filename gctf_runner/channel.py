"""Multi-producer, single-consumer transport of job outcomes."""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from gctf_runner.errors import ChannelError
from gctf_runner.models.events import ChannelEvent, ProgressEvent

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 256
DEFAULT_POLL_INTERVAL = 0.1


class _Closed:
    """Marker enqueued by close()."""


_CLOSED = _Closed()


@dataclass(kw_only=True)
class ResultChannel:
    """Bounded queue carrying progress, result and error events.

    Every event kind travels through the same FIFO, so the progress event of a
    job is always observed before its result. Progress is best effort and is
    dropped when the channel is full; results and errors wait for room.
    """

    capacity: int = DEFAULT_CAPACITY
    poll_interval: float = DEFAULT_POLL_INTERVAL
    dropped: int = 0
    _queue: asyncio.Queue[ChannelEvent | _Closed] = field(init=False, repr=False)
    _closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._queue = asyncio.Queue(maxsize=self.capacity)

    @property
    def closed(self) -> bool:
        """Whether producers are done."""
        return self._closed

    async def send(self, event: ChannelEvent) -> None:
        """Send an event, waiting while the channel is full."""
        if self._closed:
            raise ChannelError(f"Channel closed, cannot send {type(event).__name__}")
        await self._queue.put(event)

    def offer(self, event: ProgressEvent) -> bool:
        """Send a progress event if there is room, otherwise drop it."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            log.debug("Channel full, dropped progress for %s", event.job_id)
            return False
        return True

    async def close(self) -> None:
        """Signal the reader that no more events will be sent."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    async def drain(self, max_iterations: int) -> AsyncIterator[ChannelEvent]:
        """Yield events until the channel is closed and empty.

        Each loop iteration either receives one event or waits at most
        ``poll_interval`` seconds, so the reader never blocks indefinitely.

        Raises:
            ChannelError: If the loop reaches ``max_iterations`` without the
                channel being closed

        """
        for iteration in range(max_iterations):
            try:
                async with asyncio.timeout(self.poll_interval):
                    item = await self._queue.get()
            except TimeoutError:
                continue

            if isinstance(item, _Closed):
                log.debug("Channel drained after %d iteration(s)", iteration + 1)
                return
            yield item

        raise ChannelError(
            f"Result channel reader exceeded {max_iterations} iterations"
        )
