# -*- coding: utf-8 -*-

"""
Scanner lifecycle management.

`Scanner.start()` validates the descriptor and hands the connection over to
a background supervisor that reconnects forever:

- serial: open the port, read until it fails, wait `serial_retry_delay`,
  open again
- network: accept one scanner (server) or dial it (client), run a session,
  reconnect after `network_retry_delay` (immediately by default)

Only parameter errors stop the supervisor. Everything after `start()`
returns is reported through `Scanner.events` and the log.
"""

import asyncio
import logging

from typing import Optional
from typing import Tuple

from .channel import CommandChannel
from .connector import Connector
from .connector import Network
from .connector import Serial
from .events import EventKind
from .events import EventSource
from .exceptions import CommError
from .exceptions import ParamError
from .exceptions import ScannerError
from .exceptions import ScannerIOError
from .session import Session
from .streams import DEFAULT_OPEN_TIMEOUT
from .streams import READ_CHUNK_SIZE
from .streams import open_serial_connection

SERIAL_RETRY_DELAY = 3.0
NETWORK_RETRY_DELAY = 0.0
COMMAND_QUEUE_SIZE = 100

log = logging.getLogger('scanlink.manager')

Streams = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


class Scanner:
    """
    Keeps one scanner connected and forwards commands to it.

    Args:
        connector: Serial or Network descriptor
        timeout: Serial open timeout in seconds (default: 60)
        queue_size: Command queue capacity
        read_size: Maximum bytes per read
        serial_retry_delay: Pause before reopening a serial port
        network_retry_delay: Pause before reconnecting a network scanner

    Example:
        >>> scanner = Scanner(Network.server('0.0.0.0', 6000))
        >>> scanner.events += print
        >>> scanner.start()
        >>> await scanner.send('TRIGGER')
    """

    def __init__(
            self,
            connector: Connector,
            *,
            timeout: Optional[float] = None,
            queue_size: int = COMMAND_QUEUE_SIZE,
            read_size: int = READ_CHUNK_SIZE,
            serial_retry_delay: float = SERIAL_RETRY_DELAY,
            network_retry_delay: float = NETWORK_RETRY_DELAY
        ):
        self._connector = connector
        self._timeout = timeout
        self._read_size = read_size
        self._serial_retry_delay = serial_retry_delay
        self._network_retry_delay = network_retry_delay
        self._channel = CommandChannel(queue_size)
        self._events = EventSource()
        self._task: Optional[asyncio.Task] = None

    def with_timeout(self, timeout: float) -> 'Scanner':
        """Set the serial open timeout"""
        self._timeout = timeout
        return self

    @property
    def connector(self) -> Connector:
        return self._connector

    @property
    def identity(self) -> str:
        return str(self._connector)

    @property
    def timeout(self) -> float:
        return DEFAULT_OPEN_TIMEOUT if self._timeout is None else self._timeout

    @property
    def events(self) -> EventSource:
        return self._events

    @events.setter
    def events(self, events: EventSource):
        # allows `scanner.events += handler`
        self._events = events

    @property
    def channel(self) -> CommandChannel:
        return self._channel

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def send(self, command: str):
        """
        Queue a command for the scanner.

        Returns once the command is queued, not once it is delivered.
        Raises CommError when the scanner has stopped for good.
        """
        await self._channel.put(command)

    def start(self) -> asyncio.Task:
        """
        Validate the descriptor and start the supervisor.

        Raises ParamError for invalid parameters before any I/O. Returns the
        supervisor task; failures after this point are only reported as
        events. Cancelling the task stops the scanner and it may be started
        again; after a fatal error it may not.
        """
        if self.running:
            raise ScannerError(f"scanner {self.identity} already started")
        if self._channel.closed:
            raise ScannerError(f"scanner {self.identity} stopped after a fatal error")

        self._connector.validate()
        if isinstance(self._connector, Serial):
            supervise = self._supervise_serial()
        else:
            supervise = self._supervise_network()

        self._task = asyncio.get_running_loop().create_task(supervise)
        return self._task

    async def _supervise_serial(self):
        await self._supervise(self._run_serial, self._serial_retry_delay)

    async def _supervise_network(self):
        await self._supervise(self._run_network, self._network_retry_delay)

    async def _supervise(self, run, delay: float):
        try:
            while True:
                outcome = await run()
                if outcome is not None:
                    log.debug("%s: session ended: %s", self.identity, outcome)
                await asyncio.sleep(delay)
                self._events.emit(EventKind.RESTART, self.identity)
        except ParamError as e:
            self._channel.close()
            self._events.emit(EventKind.FATAL, self.identity, str(e))
        except Exception as e:
            log.exception("%s: supervisor crashed", self.identity)
            self._channel.close()
            self._events.emit(EventKind.FATAL, self.identity, repr(e))
        except asyncio.CancelledError:
            # Stopped from outside; queued commands wait for the next start()
            log.debug("%s: supervisor cancelled", self.identity)
            raise

    async def _run_serial(self) -> Optional[CommError]:
        conn = self._connector
        if not isinstance(conn, Serial):
            raise ParamError(f"expected serial parameters, got network parameters ({conn})")

        self._events.emit(EventKind.CONNECTING, self.identity)
        try:
            reader, writer = await open_serial_connection(
                conn, timeout=self.timeout, read_size=self._read_size
            )
        except CommError as e:
            self._events.emit(
                EventKind.CONNECT_ERROR, self.identity, f"{e}\tparams={conn!r}"
            )
            return e
        self._events.emit(EventKind.CONNECTED, self.identity)

        # The serial session only reads; queued commands wait for a network session
        session = Session(
            self.identity, reader, writer,
            events=self._events, read_size=self._read_size
        )
        return await session.run()

    async def _run_network(self) -> Optional[CommError]:
        conn = self._connector
        if not isinstance(conn, Network):
            raise ParamError(f"expected network parameters, got serial parameters ({conn})")

        try:
            if conn.is_server:
                reader, writer = await self._accept(conn)
            else:
                reader, writer = await self._dial(conn)
        except CommError as e:
            self._events.emit(EventKind.CONNECT_ERROR, self.identity, str(e))
            return e

        session = Session(
            self.identity, reader, writer, self._channel,
            events=self._events, read_size=self._read_size
        )
        return await session.run()

    async def _accept(self, conn: Network) -> Streams:
        """Listen on the endpoint until exactly one scanner connects"""
        accepted = asyncio.get_running_loop().create_future()

        def on_connect(reader, writer):
            if accepted.done():
                writer.close()
            else:
                accepted.set_result((reader, writer))

        try:
            server = await asyncio.start_server(
                on_connect, conn.ip, conn.port
            )
        except OSError as e:
            raise ScannerIOError(e) from e
        self._events.emit(EventKind.LISTENING, self.identity)

        try:
            self._events.emit(EventKind.ACCEPT_WAIT, self.identity)
            reader, writer = await accepted
        finally:
            # Stop listening; the accepted connection stays open
            server.close()

        peer = writer.get_extra_info('peername')
        self._events.emit(EventKind.ACCEPTED, self.identity, f"peer={peer}")
        return reader, writer

    async def _dial(self, conn: Network) -> Streams:
        self._events.emit(EventKind.CONNECTING, self.identity)
        try:
            reader, writer = await asyncio.open_connection(conn.ip, conn.port)
        except OSError as e:
            raise ScannerIOError(e) from e

        peer = writer.get_extra_info('peername')
        self._events.emit(EventKind.CONNECTED, self.identity, f"peer={peer}")
        return reader, writer
