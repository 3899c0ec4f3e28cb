"""Tests for the result channel."""

import asyncio

import pytest

from gctf_runner.channel import ResultChannel
from gctf_runner.errors import ChannelError
from gctf_runner.models.events import ChannelEvent, ProgressEvent, ResultEvent
from gctf_runner.testing.factories import ResultFactory


async def _collect(channel: ResultChannel, max_iterations: int) -> list[ChannelEvent]:
    return [event async for event in channel.drain(max_iterations)]


async def test_drain_yields_events_in_order_until_closed() -> None:
    """Events are received in send order and draining stops at close()."""
    channel = ResultChannel(poll_interval=0.01)
    result = ResultFactory.build(job_id="1:a.gctf")
    progress = ProgressEvent(job_id="1:a.gctf", status="passed", symbol=".")

    assert channel.offer(progress)
    await channel.send(ResultEvent(result=result))
    await channel.close()

    assert await _collect(channel, 10) == [progress, ResultEvent(result=result)]


async def test_drain_waits_for_late_producers() -> None:
    """The reader keeps polling while producers are still running."""
    channel = ResultChannel(poll_interval=0.01)
    result = ResultFactory.build()

    async def produce() -> None:
        await asyncio.sleep(0.05)
        await channel.send(ResultEvent(result=result))
        await channel.close()

    events, _ = await asyncio.gather(_collect(channel, 1000), produce())

    assert events == [ResultEvent(result=result)]


async def test_drain_raises_when_iteration_cap_is_reached() -> None:
    """A reader that is never closed stops with ChannelError."""
    channel = ResultChannel(poll_interval=0.001)

    with pytest.raises(ChannelError, match="exceeded 5 iterations"):
        await _collect(channel, 5)


async def test_offer_drops_progress_when_full() -> None:
    """Progress is dropped instead of blocking when the channel is full."""
    channel = ResultChannel(capacity=1)
    progress = ProgressEvent(job_id="1:a.gctf", status="passed", symbol=".")

    assert channel.offer(progress)
    assert not channel.offer(progress)
    assert channel.dropped == 1


async def test_send_after_close_raises() -> None:
    """Sending on a closed channel is an error."""
    channel = ResultChannel()
    await channel.close()

    with pytest.raises(ChannelError, match="closed"):
        await channel.send(ResultEvent(result=ResultFactory.build()))


async def test_send_waits_for_room() -> None:
    """A full channel applies backpressure to send()."""
    channel = ResultChannel(capacity=1, poll_interval=0.01)
    first = ResultEvent(result=ResultFactory.build(job_id="1"))
    second = ResultEvent(result=ResultFactory.build(job_id="2"))
    await channel.send(first)

    pending = asyncio.create_task(channel.send(second))
    await asyncio.sleep(0.02)
    assert not pending.done()

    reader = asyncio.create_task(_collect(channel, 100))
    await pending
    await channel.close()

    assert await reader == [first, second]
