"""
Exception hierarchy for ESCape32 update operations.

Only ProtocolMismatchError may be tolerated by force mode; everything else
always terminates the run.
"""

from typing import Optional


class ESCUpdateError(Exception):
    """Base exception for all update/query failures."""


class TransportError(ESCUpdateError):
    """Serial primitive failed (I/O error, timeout, short read, bad echo)."""


class ESCConnectionError(TransportError):
    """Serial device could not be opened or configured."""


class ProtocolMismatchError(ESCUpdateError):
    """
    Device replied with an unexpected value or data length.

    Attributes:
        label: Operation that failed (e.g. "Error writing data")
        actual: Value or length received
        expected: Value or length required
    """

    def __init__(self, label: str, actual: int, expected: int):
        self.label = label
        self.actual = actual
        self.expected = expected
        super().__init__(f"{label} (result {actual}, expected {expected})")


class ImageValidationError(ESCUpdateError):
    """Image is empty, fills the whole target region or is not word aligned."""

    def __init__(self, path: str, length: Optional[int] = None, capacity: Optional[int] = None):
        self.path = path
        self.length = length
        self.capacity = capacity
        detail = ""
        if length is not None and capacity is not None:
            detail = f" ({length} bytes; must be a non-zero multiple of 4 below {capacity})"
        super().__init__(f"{path}: Invalid image{detail}")


class ImageReadError(ESCUpdateError, OSError):
    """Image file could not be opened or read."""


class InfoDecodeError(ESCUpdateError):
    """Info record handed to the decoder has the wrong size."""
