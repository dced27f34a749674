# -*- coding: utf-8 -*-

"""
Scanlink - asyncio connector for serial and TCP barcode scanners

Features:
- Serial ports (pyserial) and TCP in server or client role
- Barcodes delivered as events, one per scanned line
- Bounded command queue that survives reconnects
- Automatic reconnection, parameter errors reported up front
"""

from .manager import Scanner
from .session import Session
from .session import split_barcodes
from .channel import CommandChannel

from .connector import Connector
from .connector import Serial
from .connector import Network
from .connector import StopBits
from .connector import Parity

from .events import EventKind
from .events import EventSource
from .events import ScannerEvent

from .streams import open_serial_connection
from .transport import SerialTransport

from .exceptions import ScannerError
from .exceptions import ParamError
from .exceptions import CommError
from .exceptions import ScannerIOError
from .exceptions import PlatformNotSupportedError

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    # Lifecycle
    'Scanner',
    'Session',
    'split_barcodes',
    'CommandChannel',

    # Descriptors
    'Connector',
    'Serial',
    'Network',
    'StopBits',
    'Parity',

    # Events
    'EventKind',
    'EventSource',
    'ScannerEvent',

    # Serial I/O
    'open_serial_connection',
    'SerialTransport',

    # Exceptions
    'ScannerError',
    'ParamError',
    'CommError',
    'ScannerIOError',
    'PlatformNotSupportedError',
]
