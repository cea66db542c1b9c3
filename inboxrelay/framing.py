"""
inboxrelay Wire Framing

Length-prefixed JSON messages over the peer's stdin/stdout.

Frame layout:
    [4 bytes: signed payload length, little-endian][UTF-8 JSON payload]

The length is written in host byte order and swapped on big-endian hosts,
so on the wire it is always little-endian. Payloads are limited to 1 MiB.

Some senders skip the prefix and write a bare JSON object. The reader
recognizes these by a leading '{' whose four bytes are not a usable
length, and scans for the matching close brace.

Usage:
    writer = FrameWriter(sys.stdout.buffer)
    writer.send({"message": "hi", ...})

    reader = FrameReader(sys.stdin.buffer)
    message = reader.read_message()
"""

import json
import logging
import struct
import threading
from typing import Any, BinaryIO, Dict

from .exceptions import (
    FrameTooLargeError,
    InvalidFrameLengthError,
    MalformedFrameError,
    PeerDisconnectedError,
)
from .models import InboundMessage

log = logging.getLogger(__name__)

MAX_MESSAGE_SIZE = 1024 * 1024
PREFIX_SIZE = 4
LENGTH_FORMAT = "<i"

OPEN_BRACE = ord("{")
CLOSE_BRACE = ord("}")
QUOTE = ord('"')
BACKSLASH = ord("\\")

PREVIEW_CHARS = 100


def encode_frame(payload: Dict[str, Any], max_size: int = MAX_MESSAGE_SIZE) -> bytes:
    """
    Serialize a payload into a complete frame.

    Args:
        payload: JSON-serializable object
        max_size: Largest payload accepted, in bytes

    Returns:
        Length prefix followed by the UTF-8 JSON payload

    Raises:
        FrameTooLargeError: If the serialized payload exceeds max_size
    """
    data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    if len(data) > max_size:
        raise FrameTooLargeError(len(data), max_size)
    return struct.pack(LENGTH_FORMAT, len(data)) + data


def parse_payload(data: bytes) -> Dict[str, Any]:
    """
    Decode a payload into a JSON object.

    Raises:
        MalformedFrameError: If the payload is blank, not UTF-8, not JSON,
            or not a JSON object
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedFrameError(f"payload is not valid UTF-8 ({e.reason})") from e

    if not text.strip():
        raise MalformedFrameError("empty message")

    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"invalid JSON: {e.msg}", text[:PREVIEW_CHARS]) from e

    if not isinstance(obj, dict):
        raise MalformedFrameError("message is not a JSON object", text[:PREVIEW_CHARS])
    return obj


class FrameWriter:
    """
    Writes frames to the peer.

    The writer has its own lock, separate from logging, so a slow log write
    never holds up a frame and frames never interleave.
    """

    def __init__(self, stream: BinaryIO, max_size: int = MAX_MESSAGE_SIZE):
        self._stream = stream
        self._max_size = max_size
        self._lock = threading.Lock()

    def send(self, payload: Dict[str, Any]) -> bool:
        """
        Frame and write a payload.

        Oversized payloads are logged and dropped without touching the stream.

        Returns:
            True if the frame was written, False if it was rejected

        Raises:
            PeerDisconnectedError: If the stream can no longer be written
        """
        try:
            frame = encode_frame(payload, self._max_size)
        except FrameTooLargeError as e:
            log.error(str(e))
            return False

        try:
            with self._lock:
                self._stream.write(frame)
                self._stream.flush()
        except (OSError, ValueError) as e:
            raise PeerDisconnectedError(f"write failed: {e}") from e
        return True


class _BraceScanner:
    """Tracks object nesting across a byte stream, skipping string literals."""

    def __init__(self):
        self.depth = 0
        self._in_string = False
        self._escaped = False

    def feed(self, byte: int) -> bool:
        """Consume one byte; True once the outermost object has closed."""
        if self._in_string:
            if self._escaped:
                self._escaped = False
            elif byte == BACKSLASH:
                self._escaped = True
            elif byte == QUOTE:
                self._in_string = False
            return False

        if byte == QUOTE:
            self._in_string = True
        elif byte == OPEN_BRACE:
            self.depth += 1
        elif byte == CLOSE_BRACE:
            self.depth -= 1
            return self.depth == 0
        return False


class FrameReader:
    """
    Reads frames from the peer.

    Every read is bounded: the prefix by 4 bytes, a payload by its declared
    length, and an unprefixed JSON message by the same size limit.

    Raises from read_payload/read_message:
        PeerDisconnectedError: Stream closed (fatal to the read loop)
        InvalidFrameLengthError: Bad length prefix (fatal to the read loop)
        MalformedFrameError: Unusable payload (skip and keep reading)
    """

    def __init__(self, stream: BinaryIO, max_size: int = MAX_MESSAGE_SIZE):
        self._stream = stream
        self._max_size = max_size
        # Bytes read past the end of an unprefixed message
        self._pending = bytearray()

    def _read(self, size: int) -> bytes:
        if self._pending:
            chunk = bytes(self._pending[:size])
            del self._pending[:size]
            return chunk
        return self._stream.read(size)

    def _read_exact(self, size: int) -> bytes:
        """Read up to size bytes, retrying short reads until EOF."""
        buf = bytearray()
        while len(buf) < size:
            chunk = self._read(size - len(buf))
            if not chunk:
                break
            buf += chunk
        return bytes(buf)

    def read_payload(self) -> Dict[str, Any]:
        """Read the next message and return its decoded JSON object."""
        prefix = self._read_exact(PREFIX_SIZE)
        if len(prefix) < PREFIX_SIZE:
            if not prefix:
                raise PeerDisconnectedError("end of input")
            raise PeerDisconnectedError(
                f"stream closed after {len(prefix)} of {PREFIX_SIZE} length bytes"
            )

        log.debug("Raw length bytes: %s", prefix.hex("-").upper())
        (length,) = struct.unpack(LENGTH_FORMAT, prefix)
        valid_length = 0 <= length <= self._max_size

        # Lengths of 123 + 256*k also start with '{'; JSON text never leaves
        # the high byte zero, so only an impossible length means bare JSON.
        if prefix[0] == OPEN_BRACE and not valid_length:
            log.info("Detected direct JSON message without length prefix")
            data = self._scan_raw_json(prefix)
            log.info("Read direct JSON message of %d bytes", len(data))
            return parse_payload(data)

        if not valid_length:
            raise InvalidFrameLengthError(length, prefix)

        data = self._read_exact(length)
        if len(data) < length:
            raise PeerDisconnectedError(
                f"stream closed after {len(data)} of {length} payload bytes"
            )
        log.debug("Read %d payload bytes", length)
        return parse_payload(data)

    def read_message(self) -> InboundMessage:
        """Read the next message from the peer."""
        return InboundMessage.from_dict(self.read_payload())

    def _scan_raw_json(self, head: bytes) -> bytes:
        """
        Collect an unprefixed JSON object that starts with head.

        Reads one byte at a time until the braces balance, so nothing past
        the object is consumed from the stream.
        """
        scanner = _BraceScanner()
        buf = bytearray()
        data = head

        while True:
            for i, byte in enumerate(data):
                buf.append(byte)
                if scanner.feed(byte):
                    self._pending[:0] = data[i + 1:]
                    return bytes(buf)
                if len(buf) >= self._max_size:
                    raise MalformedFrameError(
                        f"unprefixed JSON exceeds {self._max_size} bytes"
                    )

            data = self._read(1)
            if not data:
                raise PeerDisconnectedError(
                    f"stream closed inside unprefixed JSON after {len(buf)} bytes"
                )
