"""
=============================================================================
COUNTING CLIENT
=============================================================================

A producer for the counting protocol: send one frame, read one count.

    Client                                   Server
      │   connect()                            │
      │ ─────────────────────────────────────► │
      │   N (4 bytes, big-endian)              │
      │ ─────────────────────────────────────► │
      │   N raw bytes (in chunks)              │
      │ ─────────────────────────────────────► │
      │                 count (4 bytes)        │
      │ ◄───────────────────────────────────── │
      │   close()                              │

Files are streamed chunk by chunk, so arbitrarily large inputs never
have to fit in memory. The length prefix is the file size.

=============================================================================
"""

import os
import socket
import logging
from typing import BinaryIO, Optional

from .config import ClientConfig
from .core.connection import Connection
from .errors import PCCError
from .protocol.framing import HEADER_SIZE, U32_MAX, decode_u32, encode_u32


logger = logging.getLogger(__name__)


class PCCClient:
    """
    Sends payloads to a counting server.
    
    Usage:
        client = PCCClient(ClientConfig(host="127.0.0.1", port=5555))
        client.count(b"Hello!")        # → 6
        client.count_file("notes.txt")
    """
    
    def __init__(self, config: ClientConfig):
        config.validate()
        self.config = config
    
    def _connect(self) -> Connection:
        sock = socket.create_connection((self.config.host, self.config.port))
        return Connection(socket=sock, address=sock.getpeername())
    
    def count(self, data: bytes) -> int:
        """Send data as one request and return the server's count."""
        if len(data) > U32_MAX:
            raise PCCError(f"Payload too large for one frame: {len(data)} bytes")
        
        with self._connect() as conn:
            conn.write_exact(encode_u32(len(data)))
            for start in range(0, len(data), self.config.chunk_size):
                conn.write_exact(data[start:start + self.config.chunk_size])
            return decode_u32(conn.read_exact(HEADER_SIZE))
    
    def count_stream(self, stream: BinaryIO, length: int) -> int:
        """
        Send exactly length bytes read from stream.
        
        Raises:
            PCCError: If the stream ends before length bytes were read.
        """
        if not 0 <= length <= U32_MAX:
            raise PCCError(f"Payload too large for one frame: {length} bytes")
        
        with self._connect() as conn:
            conn.write_exact(encode_u32(length))
            
            remaining = length
            while remaining > 0:
                chunk = stream.read(min(self.config.chunk_size, remaining))
                if not chunk:
                    raise PCCError(f"Input ended {remaining} bytes early")
                conn.write_exact(chunk)
                remaining -= len(chunk)
            
            return decode_u32(conn.read_exact(HEADER_SIZE))
    
    def count_file(self, path: str) -> int:
        """Stream a file to the server and return its printable count."""
        length = os.path.getsize(path)
        logger.debug(f"Sending {path} ({length} bytes) to {self.config.host}:{self.config.port}")
        
        with open(path, "rb") as f:
            return self.count_stream(f, length)


def count_printable(host: str, port: int, data: bytes,
                    chunk_size: Optional[int] = None) -> int:
    """One-shot helper: count the printable bytes of data on a server."""
    config = ClientConfig(host=host, port=port)
    if chunk_size is not None:
        config.chunk_size = chunk_size
    return PCCClient(config).count(data)
