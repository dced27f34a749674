"""
Test suite for scanlink - asyncio connector for barcode scanners.

Contains unit tests for descriptors, the command channel, sessions and the
serial transport, and loopback TCP tests for the lifecycle manager.
"""
