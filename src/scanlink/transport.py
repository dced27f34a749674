# -*- coding: utf-8 -*-

"""
Asyncio transport over a pyserial port.

On POSIX the port's file descriptor is registered with the event loop; on
Windows a polling task checks the port instead.
"""

import asyncio
import logging
import os
import serial

from typing import Any
from typing import Optional

from .exceptions import PlatformNotSupportedError

log = logging.getLogger('scanlink.transport')

POLL_INTERVAL = 0.005


class SerialTransport(asyncio.Transport):
    """
    Serial port transport feeding an asyncio.Protocol.

    Writes are buffered and flushed when the port is writable; the protocol
    is paused above `high_water_mark` buffered bytes and resumed at or below
    `low_water_mark`.
    """

    def __init__(
            self,
            loop: asyncio.AbstractEventLoop,
            protocol: asyncio.Protocol,
            serial_instance: serial.Serial,
            *,
            read_size: int = 1024,
            high_water_mark: int = 65536,
            low_water_mark: int = 16384
        ):
        super().__init__()

        self._loop = loop
        self._protocol = protocol
        self._serial = serial_instance
        self._read_size = read_size
        self._high_water_mark = high_water_mark
        self._low_water_mark = low_water_mark

        self._buffer = bytearray()
        self._closing = False
        self._paused = False
        self._reading = False
        self._writing = False
        self._poll_task: Optional[asyncio.Task] = None
        self._polling = os.name == 'nt'

        # Reads and writes must never block the loop
        self._serial.timeout = 0
        self._serial.write_timeout = 0

        if self._polling:
            self._poll_task = self._loop.create_task(self._poll())
        elif os.name == 'posix':
            self._watch_fd()
        else:
            raise PlatformNotSupportedError(
                f'Platform {os.name} not supported for async serial'
            )

        self._loop.call_soon(self._protocol.connection_made, self)

    def _watch_fd(self):
        try:
            self._loop.add_reader(self._serial.fileno(), self._read_ready)
        except (OSError, NotImplementedError) as e:
            raise PlatformNotSupportedError(f"POSIX async not supported: {e}")
        self._reading = True

    async def _poll(self):
        try:
            while not self._closing or self._buffer:
                if self._serial.in_waiting > 0:
                    self._read_ready()
                if self._buffer and self._serial.out_waiting < 1024:
                    self._write_ready()
                await asyncio.sleep(POLL_INTERVAL)
        except (serial.SerialException, OSError) as e:
            self._fatal_error(e)

    def _read_ready(self):
        if self._closing:
            return
        try:
            data = self._serial.read(self._read_size)
        except (serial.SerialException, OSError) as e:
            self._fatal_error(e)
            return
        if data:
            self._protocol.data_received(data)

    def write(self, data: bytes):
        if self._closing or not data:
            return
        self._buffer.extend(data)
        if not self._polling and not self._writing:
            try:
                self._loop.add_writer(self._serial.fileno(), self._write_ready)
                self._writing = True
            except (OSError, NotImplementedError):
                log.debug("%s: add_writer unavailable", self._serial.port)
        self._update_flow_control()

    def _write_ready(self):
        if self._buffer:
            try:
                written = self._serial.write(bytes(self._buffer))
            except (BlockingIOError, InterruptedError):
                written = 0
            except (serial.SerialException, OSError) as e:
                self._fatal_error(e)
                return
            del self._buffer[:written or 0]

        if not self._buffer:
            self._stop_writer()
            if self._closing:
                self._finalize(None)
        self._update_flow_control()

    def _stop_writer(self):
        if self._writing:
            try:
                self._loop.remove_writer(self._serial.fileno())
            except (OSError, NotImplementedError):
                pass
            self._writing = False

    def _stop_reader(self):
        if self._reading:
            try:
                self._loop.remove_reader(self._serial.fileno())
            except (OSError, NotImplementedError):
                pass
            self._reading = False

    def _update_flow_control(self):
        size = len(self._buffer)
        if not self._paused and size >= self._high_water_mark:
            self._paused = True
            self._notify_protocol('pause_writing')
        elif self._paused and size <= self._low_water_mark:
            self._paused = False
            self._notify_protocol('resume_writing')

    def _notify_protocol(self, method: str):
        try:
            getattr(self._protocol, method)()
        except Exception as e:
            self._loop.call_exception_handler({
                'message': f'protocol.{method}() failed',
                'exception': e,
                'transport': self,
                'protocol': self._protocol,
            })

    def _release(self):
        self._stop_reader()
        self._stop_writer()
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        if self._serial.is_open:
            self._serial.close()

    def _finalize(self, exc: Optional[Exception]):
        self._release()
        self._loop.call_soon(self._protocol.connection_lost, exc)

    def _fatal_error(self, exc: Exception):
        if self._closing:
            return
        log.debug("%s: fatal serial error: %s", self._serial.port, exc)
        self._closing = True
        self._buffer.clear()
        self._finalize(exc)

    def close(self):
        """Stop reading and close once buffered data is written"""
        if self._closing:
            return
        self._closing = True
        self._stop_reader()
        if not self._buffer:
            self._finalize(None)

    def abort(self):
        """Close immediately, discarding buffered data"""
        if self._closing and not self._buffer:
            return
        self._closing = True
        self._buffer.clear()
        self._finalize(None)

    def is_closing(self) -> bool:
        return self._closing

    def pause_reading(self):
        self._stop_reader()

    def resume_reading(self):
        if not self._polling and not self._reading and not self._closing:
            try:
                self._watch_fd()
            except PlatformNotSupportedError as e:
                log.debug("%s: cannot resume reading: %s", self._serial.port, e)

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        return {
            'serial': self._serial,
            'write_buffer_size': len(self._buffer),
            'closing': self._closing,
        }.get(name, default)

    def can_write_eof(self):
        return False

    def write_eof(self):
        raise NotImplementedError("Serial ports do not support EOF")

    def get_write_buffer_size(self) -> int:
        return len(self._buffer)

    def set_write_buffer_limits(self, high: Optional[int] = None, low: Optional[int] = None):
        if high is None:
            high = 65536 if low is None else 4 * low
        if low is None:
            low = high // 4
        if not high >= low >= 0:
            raise ValueError(f"high ({high}) must be >= low ({low}) must be >= 0")
        self._high_water_mark = high
        self._low_water_mark = low
        self._update_flow_control()
