# -*- coding: utf-8 -*-

"""
Unit tests for CommandChannel.
"""
import pytest
import asyncio

from scanlink.channel import CommandChannel
from scanlink.exceptions import CommError


class TestCommandChannel:
    """Test queueing, backpressure and consumer exclusivity."""

    @pytest.mark.asyncio
    async def test_fifo_order(self):
        """Commands come out in the order they were put."""
        channel = CommandChannel()
        for command in ("A", "B", "C"):
            await channel.put(command)

        async with channel.consumer() as commands:
            received = [await commands.get() for _ in range(3)]

        assert received == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_full_channel_suspends_producer(self):
        """A full channel blocks put() instead of dropping the command."""
        channel = CommandChannel(maxsize=1)
        await channel.put("A")

        pending = asyncio.ensure_future(channel.put("B"))
        await asyncio.sleep(0.01)
        assert not pending.done()

        async with channel.consumer() as commands:
            assert await commands.get() == "A"
            await asyncio.wait_for(pending, 1)
            assert await commands.get() == "B"

    @pytest.mark.asyncio
    async def test_closed_channel_rejects_put(self):
        """put() fails once the channel is closed."""
        channel = CommandChannel()
        channel.close()

        assert channel.closed is True
        with pytest.raises(CommError):
            await channel.put("A")

    @pytest.mark.asyncio
    async def test_close_wakes_blocked_producers(self):
        """Producers waiting on a full channel fail when it closes."""
        channel = CommandChannel(maxsize=1)
        await channel.put("A")

        pending = asyncio.ensure_future(channel.put("B"))
        await asyncio.sleep(0.01)
        channel.close()

        with pytest.raises(CommError):
            await asyncio.wait_for(pending, 1)
        assert channel.qsize() == 1

    @pytest.mark.asyncio
    async def test_cancelled_put_adds_nothing(self):
        """Cancelling a blocked put() leaves the queue untouched."""
        channel = CommandChannel(maxsize=1)
        await channel.put("A")

        pending = asyncio.ensure_future(channel.put("B"))
        await asyncio.sleep(0.01)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert channel.qsize() == 1

    @pytest.mark.asyncio
    async def test_single_consumer(self):
        """A second consumer waits until the first one is done."""
        channel = CommandChannel()
        entered = asyncio.Event()

        async def second():
            async with channel.consumer():
                entered.set()

        async with channel.consumer():
            assert channel.attached is True
            waiter = asyncio.ensure_future(second())
            await asyncio.sleep(0.01)
            assert not entered.is_set()

        await asyncio.wait_for(waiter, 1)
        assert entered.is_set()
        assert channel.attached is False

    @pytest.mark.asyncio
    async def test_cancelled_consumer_releases_channel(self):
        """Cancelling the holder hands the channel to the next consumer."""
        channel = CommandChannel()

        async def hold():
            async with channel.consumer() as commands:
                await commands.get()

        holder = asyncio.ensure_future(hold())
        await asyncio.sleep(0.01)
        assert channel.attached is True

        holder.cancel()
        await asyncio.gather(holder, return_exceptions=True)

        assert channel.attached is False

    @pytest.mark.asyncio
    async def test_commands_survive_consumers(self):
        """Commands not taken by one consumer are kept for the next."""
        channel = CommandChannel()
        for command in ("A", "B"):
            await channel.put(command)

        async with channel.consumer() as commands:
            assert await commands.get() == "A"

        async with channel.consumer() as commands:
            assert await commands.get() == "B"
