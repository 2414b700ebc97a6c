"""
=============================================================================
PCCSERVER - Printable Character Counting Server
=============================================================================

A TCP server that counts printable ASCII characters (bytes 32-126) in
length-prefixed payloads and keeps per-character totals for its whole
lifetime. On SIGINT or SIGTERM it stops accepting clients and prints:

    char 'A' : 12 times
    ...
    Served 4 client(s) successfully

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    pccserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # python -m pccserver <port>
    ├── cli.py               # pcc-server / pcc-client front ends
    ├── config.py            # ServerConfig / ClientConfig dataclasses
    ├── errors.py            # Error taxonomy
    ├── server.py            # PCCServer orchestrator
    ├── handler.py           # Per-connection state machine
    ├── stats.py             # Process-wide histogram and counters
    ├── client.py            # Protocol producer
    ├── core/                # Socket-level components
    │   ├── socket_server.py # Listening socket, accept loop, signals
    │   ├── connection.py    # read_exact / write_exact
    │   └── shutdown.py      # ShutdownToken
    └── protocol/            # I/O-free protocol pieces
        ├── framing.py       # 4-byte big-endian frames
        └── counting.py      # Printable classification, Histogram

=============================================================================
QUICK START
=============================================================================

    from pccserver import PCCServer, ServerConfig

    server = PCCServer(ServerConfig(port=5555))
    server.run()   # Ctrl+C to stop and print the report

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, ClientConfig
from .server import PCCServer
from .client import PCCClient, count_printable
from .stats import Aggregator, DropReason
from .protocol import Histogram, CountResult, count

__all__ = [
    "PCCServer",
    "PCCClient",
    "ServerConfig",
    "ClientConfig",
    "Aggregator",
    "DropReason",
    "Histogram",
    "CountResult",
    "count",
    "count_printable",
    "__version__",
]
