"""
=============================================================================
PROTOCOL COMPONENTS
=============================================================================

Pure, I/O-free pieces of the character counting protocol:

    framing.py    4-byte big-endian length / count frames
    counting.py   printable-byte classification and histograms

Nothing in this package touches a socket, so everything here can be
tested with plain bytes.

=============================================================================
"""

from .framing import HEADER_SIZE, U32_MAX, encode_u32, decode_u32
from .counting import (
    PRINTABLE_MIN,
    PRINTABLE_MAX,
    HISTOGRAM_SIZE,
    Histogram,
    CountResult,
    count,
    is_printable,
)

__all__ = [
    # Framing
    "HEADER_SIZE",
    "U32_MAX",
    "encode_u32",
    "decode_u32",
    # Counting
    "PRINTABLE_MIN",
    "PRINTABLE_MAX",
    "HISTOGRAM_SIZE",
    "Histogram",
    "CountResult",
    "count",
    "is_printable",
]
