"""Tests for synchronized console output."""

import asyncio
import io

from gctf_runner.output import SynchronizedOutput


async def test_concurrent_prints_are_not_interleaved() -> None:
    """Whole print requests from concurrent tasks never interleave."""
    stream = io.StringIO()
    first = "A" * 1000
    second = "B" * 1000

    async def write(text: str, output: SynchronizedOutput) -> None:
        for _ in range(10):
            output.print_line(text)
            await asyncio.sleep(0)

    async with SynchronizedOutput(stream=stream) as output:
        await asyncio.gather(write(first, output), write(second, output))

    lines = stream.getvalue().splitlines()
    assert len(lines) == 20
    assert all(line in {first, second} for line in lines)


async def test_progress_wraps_lines() -> None:
    """Progress symbols wrap after line_length symbols."""
    stream = io.StringIO()

    async with SynchronizedOutput(stream=stream, line_length=4) as output:
        for symbol in "..F..E":
            output.progress(symbol)

    assert stream.getvalue() == "..F.\n.E\n"


async def test_text_starts_on_new_line_after_progress() -> None:
    """A text block is moved to a fresh line when symbols are pending."""
    stream = io.StringIO()

    async with SynchronizedOutput(stream=stream) as output:
        output.progress(".")
        output.print_line("preview")
        output.progress("S")

    assert stream.getvalue() == ".\npreview\nS\n"


async def test_stop_drains_pending_requests() -> None:
    """Requests queued before stop() are all written."""
    stream = io.StringIO()
    output = SynchronizedOutput(stream=stream)
    await output.start()

    for index in range(100):
        output.print_line(str(index))
    await output.stop()

    assert stream.getvalue().splitlines() == [str(index) for index in range(100)]


async def test_flush_waits_for_written_requests() -> None:
    """flush() returns once every submitted request reached the stream."""
    stream = io.StringIO()

    async with SynchronizedOutput(stream=stream) as output:
        output.print("hello")
        await output.flush()

        assert stream.getvalue() == "hello"
