"""
pytest configuration and fixtures.
"""

import io
import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pccserver import PCCServer, ServerConfig
from pccserver.protocol import encode_u32, decode_u32


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        poll_interval=0.05,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def recv_exact(sock: socket.socket, n: int) -> bytes:
    """Client-side helper: read exactly n bytes or fail the test."""
    data = b""
    while len(data) < n:
        chunk = sock.recv(n - len(data))
        if not chunk:
            raise AssertionError(f"Server closed after {len(data)} of {n} bytes")
        data += chunk
    return data


def send_request(port: int, payload: bytes, length: Optional[int] = None) -> int:
    """Send one frame to the server and return the count it answers with."""
    if length is None:
        length = len(payload)
    with socket.create_connection(('127.0.0.1', port), timeout=5.0) as s:
        s.sendall(encode_u32(length) + payload)
        return decode_u32(recv_exact(s, 4))


class RunningServer:
    """Server helper that runs PCCServer in a background thread."""
    
    def __init__(self, server: PCCServer):
        self.server = server
        self.output = server._output
        self._thread: threading.Thread = None
        self.aggregator = None
    
    @property
    def port(self) -> int:
        return self.server.address[1]
    
    def start(self):
        """Start server in background thread."""
        def target():
            self.aggregator = self.server.run(install_signal_handlers=False)
        
        self._thread = threading.Thread(target=target, daemon=True)
        self._thread.start()
        
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")
    
    def stop(self) -> str:
        """Stop the server and return its report text."""
        self.server.shutdown()
        
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        
        return self.output.getvalue()


@pytest.fixture
def running_server(config: ServerConfig) -> Generator[RunningServer, None, None]:
    """A started server whose report is captured in memory."""
    srv = RunningServer(PCCServer(config, output=io.StringIO()))
    srv.start()
    
    yield srv
    
    srv.stop()


@pytest.fixture
def send():
    """The send_request helper, for tests that talk to running_server."""
    return send_request
