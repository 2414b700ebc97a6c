"""
=============================================================================
PRINTABLE CHARACTER COUNTING SERVER
=============================================================================

The orchestrator that ties the components together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         PCCServer                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    ┌──────────────┐    ┌───────────────────┐    ┌──────────────┐   │
    │    │ SocketServer │───►│ ConnectionHandler │───►│  Aggregator  │   │
    │    │ (accept loop)│    │ (one exchange)    │    │ (statistics) │   │
    │    └──────┬───────┘    └───────────────────┘    └──────┬───────┘   │
    │           │                                            │           │
    │           ▼                                            ▼           │
    │    ┌──────────────┐                            ┌──────────────┐   │
    │    │ShutdownToken │                            │ final report │   │
    │    │(SIGINT/TERM) │                            │   (stdout)   │   │
    │    └──────────────┘                            └──────────────┘   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    1. run() configures logging, binds and listens
    2. Connections are served one at a time, synchronously
    3. SIGINT / SIGTERM / shutdown() cancel the token
    4. The loop stops accepting; an in-flight request is finished or
       dropped according to the drain policy
    5. The report is written to stdout exactly once
    6. run() returns the Aggregator

=============================================================================
"""

import sys
import logging
from typing import Optional, TextIO, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ShutdownToken
from .handler import ConnectionHandler
from .stats import Aggregator


logger = logging.getLogger(__name__)


class PCCServer:
    """
    Iterative printable-character counting server.
    
    Usage:
        server = PCCServer(ServerConfig(port=5555))
        server.run()  # Blocks until SIGINT/SIGTERM, then prints the report
    
    Embedding / tests (from another thread):
        server.shutdown()
    """
    
    def __init__(self, config: Optional[ServerConfig] = None,
                 output: Optional[TextIO] = None):
        """
        Args:
            config: Server configuration. Uses defaults if not provided.
            output: Where the final report goes. Defaults to sys.stdout
                    at report time.
        
        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config
        
        self._output = output
        self.token = ShutdownToken()
        self.aggregator = Aggregator()
        
        self._socket_server = SocketServer(self.config, self.token)
        self._handler = ConnectionHandler(self.config)
        self._reported = False
    
    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address
    
    def run(self, install_signal_handlers: bool = True) -> Aggregator:
        """
        Serve until shutdown, then emit the report.
        
        Args:
            install_signal_handlers: Route SIGINT/SIGTERM to shutdown.
                                     Ignored off the main thread.
        
        Returns:
            The aggregator holding the final statistics.
        
        Raises:
            StartupError: If the server could not start listening. No
                          report is printed in that case.
        """
        self._setup_logging()
        
        self._socket_server.start(
            self._handle_connection,
            install_signal_handlers=install_signal_handlers,
        )
        
        self._emit_report()
        return self.aggregator
    
    def shutdown(self):
        """Request graceful shutdown. Safe from any thread."""
        self._socket_server.shutdown()
    
    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)
    
    def _setup_logging(self):
        """Configure logging based on config. Logs go to stderr."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            stream=sys.stderr,
        )
        
        logging.getLogger("pccserver").setLevel(level)
    
    def _handle_connection(self, conn: Connection):
        self._handler.handle(conn, self.aggregator)
    
    def _emit_report(self):
        """Write the final report once."""
        if self._reported:
            return
        self._reported = True
        
        logger.info(
            f"Served {self.aggregator.served_clients} client(s), "
            f"dropped {self.aggregator.total_dropped}"
        )
        
        out = self._output or sys.stdout
        out.write(self.aggregator.render_report())
        out.flush()
