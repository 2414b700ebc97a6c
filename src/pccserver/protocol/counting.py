"""
=============================================================================
COUNTING ENGINE
=============================================================================

A byte is PRINTABLE when 32 <= b <= 126, i.e. ASCII space through '~'.
Everything else (control characters, DEL = 127, and every byte >= 128)
is ignored, both for the total and for the histogram.

    0x00 ... 0x1F   0x20 ' '  ...  0x7E '~'   0x7F   0x80 ... 0xFF
    └─ ignored ──┘  └──────── counted ───────┘ ignored └─ ignored ─┘

=============================================================================
HISTOGRAM LAYOUT
=============================================================================

The histogram is a fixed array of 95 slots, one per printable character,
indexed by ``code - 32``:

    slot:    0    1    2   ...   33   ...   94
    char:   ' '  '!'  '"'  ...  'A'   ...  '~'

Histograms are VALUES: count() always returns a fresh one, and folding one
histogram into another copies numbers, never references. A per-request
histogram therefore can never alias the process-wide one.

=============================================================================
STREAMING
=============================================================================

Counting is additive, so a payload may be counted chunk by chunk:

    count(a + b) == count(a) + count(b)

The connection handler relies on this to count each received chunk and
fold the partial results instead of buffering the whole payload.

=============================================================================
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union


PRINTABLE_MIN = 32
PRINTABLE_MAX = 126
HISTOGRAM_SIZE = PRINTABLE_MAX - PRINTABLE_MIN + 1  # 95


def is_printable(byte: int) -> bool:
    """Check whether a byte value is a printable ASCII character."""
    return PRINTABLE_MIN <= byte <= PRINTABLE_MAX


def _slot(key: Union[int, str]) -> int:
    """Map a character code or one-character string to its slot index."""
    code = ord(key) if isinstance(key, str) else key
    if not is_printable(code):
        raise KeyError(f"Not a printable character: {key!r}")
    return code - PRINTABLE_MIN


class Histogram:
    """
    Occurrence counts for the 95 printable characters.
    
    Supports lookup by code or by character:
        
        hist[65] == hist["A"]
    
    and folding with ``+`` (new value) or ``update()`` (in place).
    """
    
    __slots__ = ("_counts",)
    
    def __init__(self, counts: Union[List[int], None] = None):
        if counts is None:
            counts = [0] * HISTOGRAM_SIZE
        elif len(counts) != HISTOGRAM_SIZE:
            raise ValueError(f"Histogram needs {HISTOGRAM_SIZE} slots, got {len(counts)}")
        self._counts = list(counts)
    
    @classmethod
    def from_bytes(cls, data: bytes) -> "Histogram":
        """Build a histogram of the printable bytes in data."""
        hist = cls()
        # Counter walks the buffer in C, much faster than a Python loop
        for code, occurrences in Counter(data).items():
            if is_printable(code):
                hist._counts[code - PRINTABLE_MIN] += occurrences
        return hist
    
    def __getitem__(self, key: Union[int, str]) -> int:
        return self._counts[_slot(key)]
    
    def __len__(self) -> int:
        return HISTOGRAM_SIZE
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Histogram):
            return NotImplemented
        return self._counts == other._counts
    
    def __add__(self, other: "Histogram") -> "Histogram":
        if not isinstance(other, Histogram):
            return NotImplemented
        return Histogram([a + b for a, b in zip(self._counts, other._counts)])
    
    def __repr__(self) -> str:
        items = ", ".join(f"{chr(code)!r}: {n}" for code, n in self.items())
        return f"Histogram({{{items}}})"
    
    def update(self, other: "Histogram") -> None:
        """Add another histogram's counts into this one."""
        for index, value in enumerate(other._counts):
            self._counts[index] += value
    
    def copy(self) -> "Histogram":
        return Histogram(self._counts)
    
    def items(self) -> Iterator[Tuple[int, int]]:
        """Yield (code, count) for non-zero entries in ascending code order."""
        for index, value in enumerate(self._counts):
            if value:
                yield index + PRINTABLE_MIN, value
    
    def total(self) -> int:
        """Sum of all counts."""
        return sum(self._counts)
    
    def is_empty(self) -> bool:
        return not any(self._counts)


@dataclass
class CountResult:
    """
    Result of counting one request (or one chunk of it).
    
    Attributes:
        total: Number of printable bytes.
        histogram: Per-character breakdown of those bytes.
    """
    
    total: int = 0
    histogram: Histogram = field(default_factory=Histogram)
    
    def __add__(self, other: "CountResult") -> "CountResult":
        if not isinstance(other, CountResult):
            return NotImplemented
        return CountResult(self.total + other.total, self.histogram + other.histogram)
    
    def update(self, other: "CountResult") -> None:
        """Fold another (chunk) result into this one in place."""
        self.total += other.total
        self.histogram.update(other.histogram)


def count(data: bytes) -> CountResult:
    """
    Count the printable bytes in data.
    
    Pure and stateless; safe to call per chunk and fold the results.
    
    Example:
        >>> result = count(b"Hi!\\x01\\x02")
        >>> result.total
        3
        >>> result.histogram["H"]
        1
    """
    histogram = Histogram.from_bytes(data)
    return CountResult(total=histogram.total(), histogram=histogram)
