"""Console output shared by concurrent workers."""

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from types import TracebackType
from typing import Self, TextIO

log = logging.getLogger(__name__)

PROGRESS_LINE_LENGTH = 80


@dataclass(kw_only=True)
class SynchronizedOutput:
    """Owns an output stream through a single writer task.

    Workers submit print requests over a queue and the writer performs them
    one at a time, so the text of one request is never interleaved with the
    text of another. Submitting never blocks the worker.
    """

    stream: TextIO = field(default_factory=lambda: sys.stdout)
    line_length: int = PROGRESS_LINE_LENGTH
    _queue: asyncio.Queue[tuple[str, bool] | None] = field(
        default_factory=asyncio.Queue, repr=False
    )
    _writer: asyncio.Task[None] | None = field(default=None, repr=False)
    _column: int = 0

    def print(self, text: str) -> None:
        """Write text as one uninterrupted unit."""
        self._queue.put_nowait((text, False))

    def print_line(self, text: str) -> None:
        """Write text followed by a newline as one uninterrupted unit."""
        self.print(f"{text}\n")

    def progress(self, symbol: str) -> None:
        """Write a progress symbol, wrapping lines at ``line_length`` symbols."""
        self._queue.put_nowait((symbol, True))

    async def flush(self) -> None:
        """Wait until every request submitted so far has been written."""
        if self._writer is not None:
            await self._queue.join()

    async def start(self) -> None:
        """Start the writer task."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._run(), name="output-writer")

    async def stop(self) -> None:
        """Write every pending request, terminate the line and stop the writer."""
        if self._writer is None:
            return
        self._queue.put_nowait(None)
        await self._writer
        self._writer = None
        if self._column:
            self.stream.write("\n")
            self._column = 0
        self.stream.flush()

    async def _run(self) -> None:
        while (request := await self._queue.get()) is not None:
            text, is_symbol = request
            if is_symbol:
                self._write_symbol(text)
            else:
                self._write_text(text)
            self.stream.flush()
            self._queue.task_done()
        self._queue.task_done()

    def _write_symbol(self, symbol: str) -> None:
        self.stream.write(symbol)
        self._column += 1
        if self._column >= self.line_length:
            self.stream.write("\n")
            self._column = 0

    def _write_text(self, text: str) -> None:
        # Text blocks start on a fresh line when progress symbols are pending.
        if self._column:
            self.stream.write("\n")
        self.stream.write(text)
        self._column = len(text.rsplit("\n", 1)[-1])

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
