"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one accepted client socket with the two primitives the
protocol needs: read EXACTLY n bytes, and write EXACTLY these bytes.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A client that sends a 4-byte
length followed by 10 payload bytes might be observed as:

    recv() → 00 00                   (half the header!)
    recv() → 00 0a 48 69             (rest of header + 2 payload bytes)
    recv() → 21 ...                  (the remainder)

So every read loops, summing partial deliveries, until the requested
number of bytes has arrived. send() has the mirror-image problem: it may
accept only part of the buffer, so writes loop as well.

=============================================================================
INTERRUPTIBLE BLOCKING
=============================================================================

Python retries system calls interrupted by a signal (PEP 475), so a
blocked recv() never returns EINTR to us. Instead the socket gets a short
timeout and every expired poll checks the ShutdownToken:

    ┌─────────────────────────────────────────────────────────────────┐
    │   while len(buffer) < n:                                        │
    │       recv()                                                    │
    │         ├── data       → append, keep going                     │
    │         ├── b""        → PeerClosed (EOF before n bytes)        │
    │         ├── timeout    → token cancelled?                       │
    │         │                   yes → StreamInterrupted(partial)    │
    │         │                   no  → poll again (no deadline)      │
    │         └── OSError    → TransportError                         │
    └─────────────────────────────────────────────────────────────────┘

The poll interval is NOT a read deadline. A peer that goes silent blocks
the server for as long as it stays connected and no shutdown arrives.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ACCEPTED ──► LENGTH_READ ──► PAYLOAD_READ ──► RESULT_SENT ──► CLOSED
        │             │                │                │
        └─────────────┴────────────────┴────────────────┴──► ABORTED

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field

from ..errors import PeerClosed, StreamInterrupted, TransportError
from .shutdown import ShutdownToken


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of one request/response exchange."""
    ACCEPTED = "accepted"          # Socket accepted, nothing read yet
    LENGTH_READ = "length_read"    # 4-byte length prefix decoded
    PAYLOAD_READ = "payload_read"  # Payload consumed and counted
    RESULT_SENT = "result_sent"    # 4-byte count delivered
    CLOSED = "closed"              # Socket released after success
    ABORTED = "aborted"            # Socket released after a failure


@dataclass
class Connection:
    """
    A client connection with exact-length read and write.
    
    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        token: Shutdown token polled while blocked.
        poll_interval: Seconds between token checks while blocked.
        id: Short identifier for log correlation.
        state: Current protocol state (driven by the handler).
        bytes_received: Total bytes read so far.
        bytes_sent: Total bytes written so far.
    
    Usage:
        with Connection(sock, addr, token) as conn:
            header = conn.read_exact(4)
            conn.write_exact(b"...")
    """
    
    socket: socket.socket
    address: tuple
    token: ShutdownToken = field(default_factory=ShutdownToken)
    poll_interval: float = 0.5
    
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)
    bytes_received: int = 0
    bytes_sent: int = 0
    
    _closed: bool = field(default=False, repr=False)
    
    def __post_init__(self):
        # Accepted sockets may inherit non-blocking mode from the listener
        self.socket.setblocking(True)
        self.socket.settimeout(self.poll_interval)
    
    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else "-"
    
    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at
    
    @property
    def is_closed(self) -> bool:
        return self._closed
    
    # ─────────────────────────────────────────────────────────────────────
    # STREAM READER
    # ─────────────────────────────────────────────────────────────────────
    
    def read_exact(self, n: int) -> bytes:
        """
        Read exactly n bytes.
        
        Args:
            n: Number of bytes wanted. 0 returns b"" without touching
               the socket.
        
        Returns:
            Exactly n bytes.
        
        Raises:
            PeerClosed: End-of-stream before n bytes arrived.
            StreamInterrupted: Shutdown was requested while waiting.
                               ``partial`` holds what this call read.
            TransportError: Any other socket failure.
        """
        buffer = bytearray()
        
        while len(buffer) < n:
            try:
                chunk = self.socket.recv(n - len(buffer))
            except socket.timeout:
                if self.token.cancelled:
                    raise StreamInterrupted(bytes(buffer))
                continue
            except OSError as e:
                raise TransportError(f"recv failed: {e}") from e
            
            if not chunk:
                raise PeerClosed(len(buffer), n)
            
            buffer += chunk
            self.bytes_received += len(chunk)
        
        return bytes(buffer)
    
    def write_exact(self, data: bytes) -> None:
        """
        Write all of data, looping over partial sends.
        
        Raises:
            StreamInterrupted: Shutdown was requested while the peer
                               was not draining its receive buffer.
            TransportError: Reset, broken pipe, or another socket error.
        """
        view = memoryview(data)
        sent = 0
        
        while sent < len(view):
            try:
                written = self.socket.send(view[sent:])
            except socket.timeout:
                if self.token.cancelled:
                    raise StreamInterrupted(bytes(view[:sent]))
                continue
            except OSError as e:
                raise TransportError(f"send failed: {e}") from e
            
            if written == 0:
                raise TransportError("send returned 0 bytes")
            
            sent += written
            self.bytes_sent += written
    
    # ─────────────────────────────────────────────────────────────────────
    # CLEANUP
    # ─────────────────────────────────────────────────────────────────────
    
    def close(self):
        """
        Release the socket. Idempotent.
        
        shutdown(SHUT_WR) sends FIN so the client sees a clean end of
        stream after the 4-byte count; errors here only mean the peer
        is already gone.
        """
        if self._closed:
            return
        self._closed = True
        
        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected
        
        try:
            self.socket.close()
        except OSError:
            pass
        
        logger.debug(f"[{self.id}] Connection closed in state {self.state.value}")
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
