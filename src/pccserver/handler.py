"""
=============================================================================
CONNECTION HANDLER
=============================================================================

Drives ONE connection through the counting exchange:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      Per-Connection Flow                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ACCEPTED                                                          │
    │      │  read_exact(4) → decode_u32 → N                               │
    │      ▼                                                               │
    │   LENGTH_READ                                                        │
    │      │  repeat: read_exact(min(chunk, left)) → count() → fold        │
    │      ▼                                                               │
    │   PAYLOAD_READ                                                       │
    │      │  write_exact(encode_u32(total))                               │
    │      ▼                                                               │
    │   RESULT_SENT                                                        │
    │      │  close socket, then aggregator.record(result)                 │
    │      ▼                                                               │
    │   CLOSED                                                             │
    │                                                                      │
    │   Any StreamError along the way → close socket → ABORTED             │
    │   (nothing is folded into the global statistics)                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SHUTDOWN DURING A REQUEST
=============================================================================

    While waiting for the length   → drop the client (DropReason.SHUTDOWN)
    While reading the payload      → drain_on_interrupt=True:
                                         count what already arrived and
                                         answer with that count
                                     drain_on_interrupt=False:
                                         drop the client
    While sending the count        → drop the client

A drained request that gets its (partial) count delivered is a served
client like any other.

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import ServerConfig
from .core.connection import Connection, ConnectionState
from .errors import PeerClosed, StreamError, StreamInterrupted
from .protocol.counting import CountResult, count
from .protocol.framing import HEADER_SIZE, decode_u32, encode_u32
from .stats import Aggregator, DropReason


logger = logging.getLogger(__name__)


@dataclass
class ConnectionOutcome:
    """
    What happened to one connection.
    
    Doubles as the structured log entry for that connection.
    """
    
    connection_id: str
    client_ip: str
    served: bool = False
    expected_length: Optional[int] = None
    payload_received: int = 0
    drained: bool = False
    reason: Optional[DropReason] = None
    error: str = ""
    duration_ms: float = 0.0
    result: CountResult = field(default_factory=CountResult, repr=False)
    
    @property
    def printable(self) -> int:
        return self.result.total
    
    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "client_ip": self.client_ip,
            "served": self.served,
            "expected_length": self.expected_length,
            "payload_received": self.payload_received,
            "printable": self.printable,
            "drained": self.drained,
            "reason": self.reason.value if self.reason else None,
            "error": self.error,
            "duration_ms": round(self.duration_ms, 2),
        }
    
    def to_text(self) -> str:
        expected = "-" if self.expected_length is None else self.expected_length
        if self.served:
            status = "drained" if self.drained else "served"
            return (
                f"[{self.connection_id}] {self.client_ip} {status} "
                f"{self.payload_received}/{expected} bytes, "
                f"{self.printable} printable ({self.duration_ms:.2f}ms)"
            )
        return (
            f"[{self.connection_id}] {self.client_ip} dropped "
            f"({self.reason.value}) after {self.payload_received}/{expected} "
            f"bytes: {self.error}"
        )


class ConnectionHandler:
    """
    Runs the counting exchange for one connection at a time.
    
    The handler holds no per-connection state between calls; everything
    about a request lives in local variables and the returned outcome.
    """
    
    def __init__(self, config: ServerConfig):
        self.config = config
    
    def handle(self, conn: Connection, aggregator: Aggregator) -> ConnectionOutcome:
        """
        Serve one connection and fold its result into the aggregator.
        
        The socket is always closed before this returns. The aggregator
        is touched only after the socket is closed, and only through
        record() for a served client or record_drop() for a dropped one.
        """
        outcome = ConnectionOutcome(connection_id=conn.id, client_ip=conn.client_ip)
        try:
            self._exchange(conn, outcome)
        finally:
            conn.close()
            outcome.duration_ms = conn.age * 1000
        
        if outcome.served:
            conn.state = ConnectionState.CLOSED
            aggregator.record(outcome.result)
        else:
            conn.state = ConnectionState.ABORTED
            aggregator.record_drop(outcome.reason)
        
        self._log(outcome)
        return outcome
    
    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL STEPS
    # ─────────────────────────────────────────────────────────────────────
    
    def _exchange(self, conn: Connection, outcome: ConnectionOutcome) -> None:
        """Walk the state machine, recording success or the first failure."""
        try:
            length = decode_u32(conn.read_exact(HEADER_SIZE))
            outcome.expected_length = length
            conn.state = ConnectionState.LENGTH_READ
            
            self._read_payload(conn, length, outcome)
            conn.state = ConnectionState.PAYLOAD_READ
            
            conn.write_exact(encode_u32(outcome.result.total))
            conn.state = ConnectionState.RESULT_SENT
            outcome.served = True
        
        except StreamError as e:
            outcome.reason = self._classify(e)
            outcome.error = str(e)
    
    def _read_payload(self, conn: Connection, length: int, outcome: ConnectionOutcome) -> None:
        """
        Consume the payload in bounded chunks, counting as it arrives.
        
        Raises:
            StreamError: Payload could not be consumed. A shutdown
                         interruption is only re-raised when draining
                         is disabled.
        """
        remaining = length
        
        while remaining > 0:
            size = min(self.config.chunk_size, remaining)
            try:
                chunk = conn.read_exact(size)
            except StreamInterrupted as e:
                if not self.config.drain_on_interrupt:
                    raise
                # Keep whatever this read already collected
                self._fold(outcome, e.partial)
                outcome.drained = True
                logger.info(
                    f"[{conn.id}] Shutdown during payload, "
                    f"answering with {outcome.payload_received}/{length} bytes"
                )
                return
            
            self._fold(outcome, chunk)
            remaining -= size
    
    @staticmethod
    def _fold(outcome: ConnectionOutcome, chunk: bytes) -> None:
        outcome.result.update(count(chunk))
        outcome.payload_received += len(chunk)
    
    @staticmethod
    def _classify(error: StreamError) -> DropReason:
        if isinstance(error, StreamInterrupted):
            return DropReason.SHUTDOWN
        if isinstance(error, PeerClosed):
            return DropReason.PEER_CLOSED
        return DropReason.TRANSPORT
    
    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────
    
    def _log(self, outcome: ConnectionOutcome) -> None:
        """
        Emit one log line per connection.
        
        Dropped clients are an expected part of life for this server,
        so they are logged at INFO like served ones, never as errors.
        """
        if self.config.log_format == "json":
            logger.info(json.dumps(outcome.to_dict()))
        else:
            logger.info(outcome.to_text())
