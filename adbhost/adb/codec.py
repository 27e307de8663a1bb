"""Framing for the ADB host protocol.

Requests are a 4 digit hex length followed by the payload. Responses start
with a 4 byte status, ``OKAY`` or ``FAIL``, and a FAIL is followed by a
length-prefixed error string.
"""

import string
from enum import Enum

from .errors import InvalidArgumentError, ProtocolError

# Single-byte encoding used for status tokens and generic sends
LATIN1 = "latin-1"
UTF8 = "utf-8"

MAX_PAYLOAD = 0xFFFF

_HEX_DIGITS = frozenset(string.hexdigits)


class Status(Enum):
    """Status token at the start of every daemon response."""

    OKAY = "OKAY"
    FAIL = "FAIL"
    MALFORMED = "MALFORMED"


def encode_length_prefix(length: int) -> bytes:
    """Encode a payload length as 4 uppercase hex digits."""
    if length < 0 or length > MAX_PAYLOAD:
        raise ProtocolError(f"Payload length {length} cannot be framed")
    return f"{length:04X}".encode("ascii")


def encode_frame(command: str, encoding: str = UTF8) -> bytes:
    """Encode a command as a length-prefixed frame.

    The prefix counts bytes in ``encoding``, not characters. No newline is
    appended.
    """
    try:
        payload = command.encode(encoding)
    except UnicodeEncodeError as e:
        raise InvalidArgumentError(f"Command cannot be encoded as {encoding}: {command!r}") from e
    return encode_length_prefix(len(payload)) + payload


def decode_length_prefix(data: bytes) -> int:
    """Parse a 4 digit hex length prefix."""
    if len(data) != 4:
        raise ProtocolError(f"Length prefix must be 4 bytes, got {data!r}")

    text = data.decode(LATIN1)
    if not all(c in _HEX_DIGITS for c in text):
        raise ProtocolError(f"Bad length prefix: {data!r}")

    return int(text, 16)


def decode_status(data: bytes) -> Status:
    """Classify a 4 byte status token."""
    token = data.decode(LATIN1)
    if token == Status.OKAY.value:
        return Status.OKAY
    if token == Status.FAIL.value:
        return Status.FAIL
    return Status.MALFORMED
