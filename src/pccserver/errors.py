"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Two kinds of failure exist in this server, and they are handled at very
different places:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         FAILURE SCOPES                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   PROCESS-FATAL (raised out of PCCServer.run / the CLI)             │
    │      UsageError     bad arguments, nothing touched the network      │
    │      StartupError   socket / bind / listen / signal setup failed    │
    │                                                                      │
    │   CONNECTION-LOCAL (never leave the ConnectionHandler)              │
    │      PeerClosed         peer sent EOF before the frame was done     │
    │      StreamInterrupted  shutdown requested while blocked            │
    │      TransportError     reset, broken pipe, any other OSError       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A shutdown signal is NOT an error. It is a control event carried by the
ShutdownToken; StreamInterrupted is only how a blocked read or write
reports that it noticed the token.

=============================================================================
"""


class PCCError(Exception):
    """Base class for every error raised by pccserver."""


class UsageError(PCCError):
    """Invalid command line or configuration value."""


class StartupError(PCCError):
    """The listening socket or signal handlers could not be set up."""


class StreamError(PCCError):
    """A failure local to one client connection."""


class PeerClosed(StreamError):
    """
    The peer closed its side before the expected bytes arrived.
    
    Attributes:
        received: Bytes collected before end-of-stream.
        expected: Bytes the caller asked for.
    """
    
    def __init__(self, received: int, expected: int):
        super().__init__(f"Peer closed after {received} of {expected} bytes")
        self.received = received
        self.expected = expected


class StreamInterrupted(StreamError):
    """
    A blocking read or write gave up because shutdown was requested.
    
    Attributes:
        partial: Bytes already read (or written) by the interrupted call.
                 The caller decides whether they are worth keeping.
    """
    
    def __init__(self, partial: bytes = b""):
        super().__init__(f"Interrupted by shutdown after {len(partial)} bytes")
        self.partial = partial


class TransportError(StreamError):
    """Any other socket failure (reset, broken pipe, ...)."""
