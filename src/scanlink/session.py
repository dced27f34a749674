# -*- coding: utf-8 -*-

"""
One live connection to a scanner.

A session reads barcodes from the stream and, when given a command channel,
writes queued commands to it. The reader decides the session's lifetime:
once it stops, the writer is cancelled and the stream is closed.
"""

import asyncio
import logging
import re

from typing import List
from typing import Optional

from .channel import CommandChannel
from .events import EventKind
from .events import EventSource
from .exceptions import CommError
from .exceptions import ScannerIOError

log = logging.getLogger('scanlink.session')

_LINE_SPLIT = re.compile(r'[\r\n]')


def split_barcodes(data: bytes) -> List[str]:
    """
    Decode one read and split it into barcodes.

    Invalid UTF-8 is replaced rather than rejected. Lines are not carried
    over between reads, so a barcode split across two reads comes out as
    two fragments.
    """
    text = data.decode('utf-8', errors='replace')
    return [line for line in _LINE_SPLIT.split(text) if line]


class Session:
    """
    Paired reader and writer over an established stream.

    Args:
        identity: Endpoint identity used in events
        reader: Stream the scanner writes barcodes to
        writer: Stream commands are written to; closed when the session ends
        channel: Command source; without one only the reader runs
        events: Where session events are fired
        read_size: Maximum bytes per read
    """

    def __init__(
            self,
            identity: str,
            reader: asyncio.StreamReader,
            writer: asyncio.StreamWriter,
            channel: Optional[CommandChannel] = None,
            events: Optional[EventSource] = None,
            read_size: int = 1024
        ):
        self.identity = identity
        self._reader = reader
        self._writer = writer
        self._channel = channel
        self._events = events if events is not None else EventSource()
        self._read_size = read_size

    async def run(self) -> Optional[CommError]:
        """
        Run until the reader stops.

        Returns None when the scanner closed the stream, otherwise the error
        that stopped the reader.
        """
        read_task = asyncio.ensure_future(self._read_loop())
        write_task = None
        if self._channel is not None:
            write_task = asyncio.ensure_future(self._write_loop())

        try:
            outcome = await read_task
        finally:
            if not read_task.done():
                read_task.cancel()
            if write_task is not None:
                write_task.cancel()
                await asyncio.gather(write_task, return_exceptions=True)
                log.debug("%s: writer stopped", self.identity)
            await self._close()

        return outcome

    async def _read_loop(self) -> Optional[CommError]:
        while True:
            try:
                data = await self._reader.read(self._read_size)
            except OSError as e:
                self._events.emit(EventKind.RECEIVE_ERROR, self.identity, repr(e))
                return ScannerIOError(e)

            if not data:
                self._events.emit(
                    EventKind.DISCONNECTED, self.identity, "received no data, closing"
                )
                return None

            for barcode in split_barcodes(data):
                self._events.emit(EventKind.BARCODE, self.identity, barcode)

    async def _write_loop(self):
        async with self._channel.consumer() as commands:
            while True:
                command = await commands.get()
                try:
                    self._writer.write(command.encode('utf-8'))
                    await self._writer.drain()
                except OSError as e:
                    self._events.emit(
                        EventKind.SEND_ERROR, self.identity,
                        f"{e!r}, command={command!r} not delivered"
                    )
                    return
                except asyncio.CancelledError:
                    # Already taken off the queue, so it cannot be requeued
                    self._events.emit(
                        EventKind.SEND_ERROR, self.identity,
                        f"session closed, command={command!r} may not be delivered"
                    )
                    raise

    async def _close(self):
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            log.debug("%s: error while closing: %r", self.identity, e)
