# -*- coding: utf-8 -*-

"""
Scanlink exceptions

ParamError is fatal and raised before any I/O. CommError and ScannerIOError
end a session; the manager decides whether to retry.
"""

from typing import Optional


class ScannerError(Exception):
    """Base exception for all scanlink errors"""
    retryable = False


class ParamError(ScannerError):
    """Invalid scanner parameters (never retried)"""

    def __str__(self):
        return f"scanner parameter error: {super().__str__()}"


class CommError(ScannerError):
    """Communication with the scanner failed"""
    retryable = True

    def __str__(self):
        return f"scanner communication error: {super().__str__()}"


class ScannerIOError(CommError):
    """Low-level transport failure wrapping an OSError"""

    def __init__(self, error: OSError):
        super().__init__(error)
        self.error = error

    @property
    def errno(self) -> Optional[int]:
        return getattr(self.error, 'errno', None)

    def __str__(self):
        return str(self.error)


class PlatformNotSupportedError(ScannerError):
    """Platform not supported for async serial operations"""
    pass
