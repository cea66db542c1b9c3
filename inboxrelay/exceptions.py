"""
inboxrelay Exceptions

Custom exceptions for the inboxrelay bridge.
"""

from typing import Optional
from pathlib import Path


class RelayError(Exception):
    """Base exception for all inboxrelay errors."""
    pass


class FrameError(RelayError):
    """Base exception for wire protocol violations."""
    pass


class FrameTooLargeError(FrameError):
    """Raised when an outbound payload exceeds the frame size limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Message too long: {size} bytes (limit {limit})")


class InvalidFrameLengthError(FrameError):
    """Raised when an inbound length prefix is negative or over the limit.

    The stream cannot be resynchronized after this, so the inbound loop stops.
    """

    def __init__(self, length: int, raw: bytes = b""):
        self.length = length
        self.raw = raw
        super().__init__(f"Invalid message length: {length}")


class MalformedFrameError(FrameError):
    """Raised when a frame was read in full but its payload is unusable."""

    def __init__(self, reason: str, preview: Optional[str] = None):
        self.reason = reason
        self.preview = preview
        msg = f"Malformed message: {reason}"
        if preview:
            msg += f" ({preview!r})"
        super().__init__(msg)


class PeerDisconnectedError(RelayError):
    """Raised when the peer's stream closes or can no longer be written."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        msg = "Peer disconnected"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ResponseWriteError(RelayError):
    """Raised when a response could be written to neither output location."""

    def __init__(self, primary: Path, fallback: Path, reason: Optional[str] = None):
        self.primary = primary
        self.fallback = fallback
        self.reason = reason
        msg = f"Failed to save response to {primary} or {fallback}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
