# -*- coding: utf-8 -*-

"""
Streams API for serial scanners.
Opens a Serial descriptor as a StreamReader/StreamWriter pair.
"""
import asyncio
import serial
import logging

from typing import Optional
from typing import Tuple

from .connector import Serial
from .transport import SerialTransport
from .exceptions import CommError
from .exceptions import ParamError
from .exceptions import ScannerIOError

DEFAULT_OPEN_TIMEOUT = 60.0
READ_CHUNK_SIZE = 1024

_DEFAULT_LIMIT = 64 * 1024  # 64KB

log = logging.getLogger('scanlink.streams')


async def open_serial_connection(
    descriptor: Serial,
    *,
    timeout: Optional[float] = None,
    read_size: int = READ_CHUNK_SIZE,
    limit: int = _DEFAULT_LIMIT,
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Open the serial port described by `descriptor`.

    Args:
        descriptor: Serial port descriptor
        timeout: Seconds to wait for the port to open (default: 60)
        read_size: Maximum bytes read from the port at once
        limit: StreamReader buffer limit

    Returns:
        Tuple of (StreamReader, StreamWriter)

    Raises:
        ParamError: If the descriptor is not a serial descriptor
        CommError: If the port did not open within `timeout`
        ScannerIOError: If pyserial failed to open the port

    Example:
        >>> reader, writer = await open_serial_connection(Serial('COM3', 115200))
        >>> data = await reader.read(1024)
    """
    if not isinstance(descriptor, Serial):
        raise ParamError(f"expected serial parameters, got {descriptor!r}")

    if timeout is None:
        timeout = DEFAULT_OPEN_TIMEOUT

    loop = asyncio.get_running_loop()
    serial_instance = await _open_serial_port(descriptor, timeout)

    reader = asyncio.StreamReader(limit=limit)
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        transport = SerialTransport(
            loop, protocol, serial_instance, read_size=read_size
        )
    except Exception:
        serial_instance.close()
        raise
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)

    return reader, writer


async def _open_serial_port(descriptor: Serial, timeout: float) -> serial.Serial:
    """
    Create the pyserial instance in the default executor.

    The blocking open is bounded by `timeout`; the executor thread itself
    cannot be interrupted and finishes in the background. A port it opens
    after the caller gave up is closed again.
    """
    kwargs = descriptor.serial_kwargs()

    def open_port():
        return serial.Serial(**kwargs)

    loop = asyncio.get_running_loop()
    log.debug("%s: opening %r", descriptor, kwargs)
    opening = loop.run_in_executor(None, open_port)
    try:
        return await asyncio.wait_for(asyncio.shield(opening), timeout)
    except asyncio.TimeoutError:
        opening.add_done_callback(_close_abandoned_port)
        raise CommError(f"timed out opening {descriptor} after {timeout}s")
    except asyncio.CancelledError:
        opening.add_done_callback(_close_abandoned_port)
        raise
    except (serial.SerialException, OSError) as e:
        raise ScannerIOError(e) from e
    except ValueError as e:
        # pyserial rejects out-of-range settings with ValueError
        raise CommError(f"failed to open {descriptor}: {e}") from e


def _close_abandoned_port(opening: asyncio.Future):
    if opening.cancelled() or opening.exception() is not None:
        return
    port = opening.result()
    log.debug("%s: closing port opened after the caller gave up", port.port)
    try:
        port.close()
    except (serial.SerialException, OSError) as e:
        log.debug("%s: error closing abandoned port: %s", port.port, e)
