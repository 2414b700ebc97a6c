"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

This module owns the listening socket: it binds, listens, installs the
shutdown signal handlers and runs the ITERATIVE accept loop. Exactly one
client is served at a time; the next accept() only happens after the
previous connection has been fully handled and closed.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create a TCP socket
    2. setsockopt  SO_REUSEADDR, so a restart right after a shutdown
                   does not fail on sockets lingering in TIME_WAIT
    3. bind()      Reserve host:port
    4. listen()    backlog = connections the OS queues while we are busy
    5. accept()    One client at a time, handed to the connection handler
    6. close()     Always, on every exit path

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (2):   Ctrl+C
SIGTERM (15): kill, docker stop, systemd stop

The handler does one thing: cancel the ShutdownToken. It runs with the
main program suspended at an arbitrary bytecode, so it must not log,
print, or touch the statistics.

    ┌─────────────────────────────────────────────────────────────────┐
    │                    Where the token is checked                    │
    ├─────────────────────────────────────────────────────────────────┤
    │                                                                  │
    │   while not token.cancelled:      ◄── before every accept        │
    │       accept()                                                   │
    │         └── timeout → loop        ◄── accept "interrupted"       │
    │       handler(conn)                                              │
    │         └── recv/send timeouts    ◄── StreamInterrupted          │
    │                                                                  │
    └─────────────────────────────────────────────────────────────────┘

Python restarts system calls that a signal interrupts (PEP 475), so
accept() uses a short timeout and the loop re-checks the token whenever
it expires. That is what makes the accept "interruptible".

=============================================================================
"""

import errno
import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from ..errors import StartupError
from .connection import Connection
from .shutdown import ShutdownToken


logger = logging.getLogger(__name__)


# accept() failures that concern only the connection being accepted
_TRANSIENT_ACCEPT_ERRORS = frozenset({
    errno.ECONNABORTED,
    errno.EPROTO,
    errno.EINTR,
    errno.EAGAIN,
})

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SocketServer:
    """
    Iterative TCP accept loop with signal-driven shutdown.
    
    Usage:
        def handle(conn: Connection):
            ...
        
        server = SocketServer(config, token)
        server.start(handle)  # Blocks until the token is cancelled
    """
    
    def __init__(self, config: ServerConfig, token: Optional[ShutdownToken] = None):
        """
        Args:
            config: Host, port, backlog and poll interval.
            token: Shutdown token shared with every connection.
        """
        self.config = config
        self.token = token or ShutdownToken()
        
        self._socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None
        
        # Set once the socket is listening, so tests can connect
        self._ready_event = threading.Event()
        
        self._original_handlers: dict = {}
    
    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the real port when 0 was configured."""
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)
    
    def _create_socket(self) -> socket.socket:
        """Create the listening socket with SO_REUSEADDR set."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        
        # accept() waits at most this long before re-checking the token
        sock.settimeout(self.config.poll_interval)
        return sock
    
    def _setup_signals(self, install: bool):
        """
        Route SIGINT and SIGTERM to the shutdown token.
        
        Signal handlers can only be installed from the main thread. When
        the server runs elsewhere (tests, embedding) shutdown is requested
        through the token directly.
        
        Raises:
            StartupError: If a handler cannot be registered.
        """
        if not install:
            return
        
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return
        
        def shutdown_handler(signum, frame):
            self.token.cancel(signum)
        
        try:
            for sig in SHUTDOWN_SIGNALS:
                self._original_handlers[sig] = signal.signal(sig, shutdown_handler)
        except (OSError, ValueError) as e:
            self._restore_signals()
            raise StartupError(f"Failed to install signal handlers: {e}") from e
    
    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
    
    def listen(self, install_signal_handlers: bool = True):
        """
        Bind, listen and install signal handlers.
        
        Raises:
            StartupError: If any step fails. The socket is closed first.
        """
        try:
            self._socket = self._create_socket()
            self._socket.bind((self.config.host, self.config.port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to listen on {self.config.host}:{self.config.port}: {e}")
            self._cleanup()
            raise StartupError(f"Cannot listen on {self.config.host}:{self.config.port}: {e}") from e
        
        host, port = self._socket.getsockname()[:2]
        self._bound_address = (host, port)
        
        try:
            self._setup_signals(install_signal_handlers)
        except StartupError:
            self._cleanup()
            raise
        
        self._ready_event.set()
        logger.info(f"Server listening on {host}:{port} (backlog {self.config.backlog})")
    
    def start(self, connection_handler: Callable[[Connection], None],
              install_signal_handlers: bool = True):
        """
        Listen and serve until the shutdown token is cancelled.
        
        Args:
            connection_handler: Called synchronously with each accepted
                               connection. It must close the connection.
            install_signal_handlers: Route SIGINT/SIGTERM to the token.
        """
        self.listen(install_signal_handlers)
        
        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()
    
    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """
        Accept and handle one connection at a time.
        
        The token is checked before each accept and after each handled
        connection (the loop condition), and whenever accept() times out.
        """
        while not self.token.cancelled:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.token.cancelled:
                    break
                if e.errno in _TRANSIENT_ACCEPT_ERRORS:
                    logger.info(f"Accept failed, dropping connection: {e}")
                    continue
                logger.error(f"Accept error: {e}")
                raise
            
            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            
            conn = Connection(
                socket=client_socket,
                address=client_address,
                token=self.token,
                poll_interval=self.config.poll_interval,
            )
            connection_handler(conn)
        
        logger.info(f"Shutdown requested ({self.token.signal_name or 'programmatic'}), "
                    f"no longer accepting connections")
    
    def shutdown(self):
        """Request shutdown from code. Idempotent."""
        self.token.cancel()
    
    def _cleanup(self):
        """Restore signal handlers and close the listening socket."""
        self._restore_signals()
        
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None
        
        logger.info("Socket server stopped")
    
    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the socket is listening.
        
        Returns:
            True if the server is listening, False on timeout.
        """
        return self._ready_event.wait(timeout)
