"""
=============================================================================
FRAMING CODEC
=============================================================================

The wire protocol carries exactly two integers, both as 4-byte unsigned
big-endian ("network byte order") values:

    Client ──► Server     N        (payload length)  then N raw bytes
    Server ──► Client     count    (printable bytes in that payload)

    ┌──────────┬──────────┬──────────┬──────────┐
    │  byte 0  │  byte 1  │  byte 2  │  byte 3  │
    │  (MSB)   │          │          │  (LSB)   │
    └──────────┴──────────┴──────────┴──────────┘

    1024  ──►  00 00 04 00

The same codec is used in both directions even though the two values mean
different things. struct's "!I" format is exactly this layout.

=============================================================================
"""

import struct


HEADER_SIZE = 4
U32_MAX = 0xFFFFFFFF

_U32 = struct.Struct("!I")


def encode_u32(value: int) -> bytes:
    """
    Encode an unsigned 32-bit integer as 4 big-endian bytes.
    
    Raises:
        ValueError: If value does not fit in 32 unsigned bits.
    """
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"Value out of u32 range: {value}")
    return _U32.pack(value)


def decode_u32(data: bytes) -> int:
    """
    Decode 4 big-endian bytes into an unsigned integer.
    
    Raises:
        ValueError: If data is not exactly 4 bytes long.
    """
    if len(data) != HEADER_SIZE:
        raise ValueError(f"Expected {HEADER_SIZE} bytes, got {len(data)}")
    return _U32.unpack(data)[0]
