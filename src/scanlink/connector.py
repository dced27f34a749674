# -*- coding: utf-8 -*-

"""
Connection descriptors for a barcode scanner.

A scanner is reached either through a serial port (`Serial`) or a TCP
endpoint (`Network`). Both are immutable; `str(descriptor)` gives the
identity used in logs and events.
"""

import enum
import ipaddress
import os
import serial

from dataclasses import dataclass
from typing import Tuple
from typing import Union

from .exceptions import ParamError


# Case-insensitive port name prefixes accepted per platform
SERIAL_PORT_PREFIXES = {
    'nt': ('com',),
    'posix': ('/dev/',),
}


class StopBits(enum.Enum):
    NONE = 0
    ONE = 1
    TWO = 2
    ONE_POINT_FIVE = 3

    @property
    def pyserial(self) -> float:
        # pyserial has no zero stop bit setting
        return {
            StopBits.NONE: serial.STOPBITS_ONE,
            StopBits.ONE: serial.STOPBITS_ONE,
            StopBits.TWO: serial.STOPBITS_TWO,
            StopBits.ONE_POINT_FIVE: serial.STOPBITS_ONE_POINT_FIVE,
        }[self]


class Parity(enum.Enum):
    NONE = 0
    ODD = 1
    EVEN = 2
    MARK = 3
    SPACE = 4

    @property
    def pyserial(self) -> str:
        return {
            Parity.NONE: serial.PARITY_NONE,
            Parity.ODD: serial.PARITY_ODD,
            Parity.EVEN: serial.PARITY_EVEN,
            Parity.MARK: serial.PARITY_MARK,
            Parity.SPACE: serial.PARITY_SPACE,
        }[self]


def port_prefixes(platform: str = None) -> Tuple[str, ...]:
    """Port name prefixes for `platform` (defaults to os.name)"""
    return SERIAL_PORT_PREFIXES.get(platform or os.name, ())


@dataclass(frozen=True)
class Serial:
    """
    Serial port scanner.

    Args:
        name: Port name (e.g. 'COM3' or '/dev/ttyUSB0')
        baudrate: Baud rate (default: 9600)
        databits: Number of data bits, 5 to 8 (default: 8)
        stopbits: Stop bits (default: StopBits.ONE)
        parity: Parity checking (default: Parity.NONE)
    """
    name: str
    baudrate: int = 9600
    databits: int = 8
    stopbits: StopBits = StopBits.ONE
    parity: Parity = Parity.NONE

    def validate(self, platform: str = None):
        prefixes = port_prefixes(platform)
        if not self.name.lower().startswith(prefixes):
            raise ParamError(f"invalid serial port name, name={self.name}")
        if self.baudrate <= 0:
            raise ParamError(f"invalid baud rate, baudrate={self.baudrate}")
        if not 5 <= self.databits <= 8:
            raise ParamError(f"invalid data bits, databits={self.databits}")

    def serial_kwargs(self) -> dict:
        """Keyword arguments for serial.Serial()"""
        return {
            'port': self.name,
            'baudrate': self.baudrate,
            'bytesize': self.databits,
            'stopbits': self.stopbits.pyserial,
            'parity': self.parity.pyserial,
        }

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class Network:
    """
    TCP scanner endpoint.

    With `is_server` the connector listens on ip:port and waits for the
    scanner to connect; otherwise it dials out to the scanner.
    """
    ip: str
    port: int
    is_server: bool = False

    @classmethod
    def server(cls, ip: str, port: int) -> 'Network':
        return cls(ip, port, True)

    @classmethod
    def client(cls, ip: str, port: int) -> 'Network':
        return cls(ip, port, False)

    def validate(self):
        # IPv4Address also takes ints and address objects; only literals are valid here
        if not isinstance(self.ip, str):
            raise ParamError(f"invalid IP address, ip={self.ip!r}")
        try:
            ipaddress.IPv4Address(self.ip)
        except ValueError:
            raise ParamError(f"invalid IP address, ip={self.ip}")
        if not 0 <= self.port <= 0xFFFF:
            raise ParamError(f"invalid port, port={self.port}")

    def __str__(self):
        return f"{self.ip}:{self.port}"


Connector = Union[Serial, Network]
