"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

The socket-level building blocks of the server:

1. SOCKET SERVER
   Binds, listens and accepts one connection at a time.
   Turns SIGINT/SIGTERM into a ShutdownToken cancellation.

2. CONNECTION
   Wraps an accepted socket with read_exact / write_exact, which loop
   over partial reads and writes and notice shutdown while blocked.

3. SHUTDOWN TOKEN
   The one flag a signal handler is allowed to touch.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .shutdown import ShutdownToken

__all__ = [
    "SocketServer",     # Listening socket + iterative accept loop
    "Connection",       # Client socket wrapper with exact-length I/O
    "ConnectionState",  # Per-request protocol states
    "ShutdownToken",    # Cancellation flag set by signal handlers
]
