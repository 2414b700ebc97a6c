"""
=============================================================================
PROCESS-WIDE STATISTICS
=============================================================================

The Aggregator owns everything that outlives a single connection:

    - the global histogram (one slot per printable character)
    - the number of clients served successfully
    - how many clients were dropped, and why (for logs only)

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       UPDATE DISCIPLINE                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ConnectionHandler                       Aggregator                 │
    │        │                                      │                      │
    │        ├── read length   (no global change)   │                      │
    │        ├── read payload  (no global change)   │                      │
    │        ├── send count    (no global change)   │                      │
    │        │                                      │                      │
    │        └── success ──── record(result) ─────► histogram += result    │
    │                                               served += 1            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

record() is the only mutator for the histogram and the served counter,
and it updates both together. The server is single-threaded, so nobody
can observe one without the other.

=============================================================================
REPORT FORMAT
=============================================================================

External tooling parses the report, so its two line shapes are fixed:

    char ' ' : 3 times
    char 'A' : 12 times
    Served 4 client(s) successfully

Characters appear in ascending code order; zero counts are omitted.

=============================================================================
"""

from collections import Counter
from enum import Enum
from typing import List

from .protocol.counting import CountResult, Histogram


class DropReason(Enum):
    """Why a connection ended without being counted."""
    PEER_CLOSED = "peer_closed"  # EOF before the frame was complete
    SHUTDOWN = "shutdown"        # Shutdown interrupted the exchange
    TRANSPORT = "transport"      # Reset, broken pipe, other socket error


class Aggregator:
    """
    Process-wide histogram and client counters.
    
    Attributes:
        histogram: Global per-character totals. Never decreases.
        served_clients: Requests whose count was delivered.
        dropped_clients: Failed connections per DropReason.
    """
    
    def __init__(self):
        self.histogram = Histogram()
        # Unbounded ints; the u32 limit applies only to values on the wire
        self.served_clients = 0
        self.dropped_clients: Counter = Counter()
    
    def record(self, result: CountResult) -> None:
        """Fold one successfully answered request into the totals."""
        self.histogram.update(result.histogram)
        self.served_clients += 1
    
    def record_drop(self, reason: DropReason) -> None:
        """Note a dropped connection. Does not touch the histogram."""
        self.dropped_clients[reason] += 1
    
    @property
    def total_dropped(self) -> int:
        return sum(self.dropped_clients.values())
    
    def report_lines(self) -> List[str]:
        """The final report, one string per line, without newlines."""
        lines = [f"char '{chr(code)}' : {n} times" for code, n in self.histogram.items()]
        lines.append(f"Served {self.served_clients} client(s) successfully")
        return lines
    
    def render_report(self) -> str:
        return "\n".join(self.report_lines()) + "\n"
