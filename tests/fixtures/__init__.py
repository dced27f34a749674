"""
Test fixtures for scanlink testing.

Provides scripted stream stand-ins, an event recorder and free TCP ports so
sessions and the manager can be tested without scanner hardware.
"""

from .devices import (
    ScriptedReader,
    FakeWriter,
    EventRecorder,
    free_tcp_port,
    event_recorder,
    barcode_payloads,
    serial_port_name,
)

__all__ = [
    'ScriptedReader',
    'FakeWriter',
    'EventRecorder',
    'free_tcp_port',
    'event_recorder',
    'barcode_payloads',
    'serial_port_name',
]
