# -*- coding: utf-8 -*-

"""
Observable scanner events.

Handlers receive a ScannerEvent for every connection state change and for
every barcode read.
"""

import enum
import logging

from dataclasses import dataclass
from typing import Callable
from typing import List
from typing import Optional

log = logging.getLogger('scanlink.events')


class EventKind(enum.Enum):
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    CONNECT_ERROR = 'connect_error'
    LISTENING = 'listening'
    ACCEPT_WAIT = 'accept_wait'
    ACCEPTED = 'accepted'
    BARCODE = 'barcode'
    SEND_ERROR = 'send_error'
    RECEIVE_ERROR = 'receive_error'
    DISCONNECTED = 'disconnected'
    RESTART = 'restart'
    FATAL = 'fatal'


_ERROR_KINDS = frozenset({
    EventKind.CONNECT_ERROR,
    EventKind.SEND_ERROR,
    EventKind.RECEIVE_ERROR,
    EventKind.FATAL,
})


@dataclass(frozen=True)
class ScannerEvent:
    kind: EventKind
    identity: str
    detail: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.kind in _ERROR_KINDS

    def __str__(self):
        if self.detail is None:
            return f"{self.identity}\t{self.kind.value}"
        return f"{self.identity}\t{self.kind.value}\t{self.detail}"


Handler = Callable[[ScannerEvent], None]


class EventSource:

    def __init__(self):
        self._handlers: List[Handler] = []

    def __iadd__(self, handler: Handler):
        return self.add(handler)

    def __isub__(self, handler: Handler):
        return self.remove(handler)

    def add(self, handler: Handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler: Handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def fire(self, event: ScannerEvent):
        """Log the event and pass it to every handler"""
        log.log(logging.ERROR if event.is_error else logging.INFO, "%s", event)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                log.exception("event handler %r failed for %s", handler, event)

    def emit(self, kind: EventKind, identity: str, detail: Optional[str] = None):
        self.fire(ScannerEvent(kind, identity, detail))
