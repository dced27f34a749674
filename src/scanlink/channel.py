# -*- coding: utf-8 -*-

"""
Bounded command queue shared between callers and the active session.
"""

import asyncio
import contextlib

from typing import AsyncIterator

from .exceptions import CommError


class CommandChannel:
    """
    Ordered, bounded queue of outbound command strings.

    Any number of producers may `put`; a full queue suspends them instead of
    dropping commands. Only one consumer is attached at a time, guarded by a
    lock, and the queued commands outlive the consumer so they reach the
    next session in order.
    """

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)
        self._lock = asyncio.Lock()
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def attached(self) -> bool:
        """True while a consumer holds the channel"""
        return self._lock.locked()

    def qsize(self) -> int:
        return self._queue.qsize()

    def close(self):
        """No consumer will attach any more; reject further commands"""
        self._closed.set()

    async def put(self, command: str):
        if self.closed:
            raise CommError("command channel closed")
        if not self._queue.full():
            self._queue.put_nowait(command)
            return

        putter = asyncio.ensure_future(self._queue.put(command))
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait(
                {putter, closer}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            closer.cancel()
            if not putter.done():
                putter.cancel()
                await asyncio.gather(putter, return_exceptions=True)

        if putter.cancelled():
            raise CommError("command channel closed")

    @contextlib.asynccontextmanager
    async def consumer(self) -> AsyncIterator[asyncio.Queue]:
        """Hold exclusive consumption rights for the duration of the block"""
        async with self._lock:
            yield self._queue
