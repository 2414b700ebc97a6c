"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the character counting server and client.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── pcc-server 5555 --log-level DEBUG                          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── PCC_PORT=5555 python -m pccserver                          │
    │                                                                      │
    │   3. Default values (in these dataclasses)                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Validation happens eagerly at startup (fail-fast), before any socket is
created.

=============================================================================
"""

import os
from dataclasses import dataclass


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the counting server.
    
    NETWORK SETTINGS
    - host, port, backlog
    
    STREAM SETTINGS
    - chunk_size, poll_interval, drain_on_interrupt
    
    LOGGING
    - log_level, log_format
    """
    
    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────
    
    host: str = "0.0.0.0"
    """
    The IP address to bind to. Defaults to all interfaces.
    """
    
    port: int = 0
    """
    The port number to listen on. 0 lets the OS pick a free port
    (useful for tests); the bound port is available from the server.
    """
    
    backlog: int = 10
    """
    Maximum number of connections the OS queues while the server is busy
    with the current client. Beyond that, new connections are refused.
    """
    
    # ─────────────────────────────────────────────────────────────────────
    # STREAM SETTINGS
    # ─────────────────────────────────────────────────────────────────────
    
    chunk_size: int = 1024
    """
    Payload bytes read and counted per step. Bounds memory per request
    regardless of the announced payload length.
    """
    
    poll_interval: float = 0.5
    """
    Seconds a blocking accept/recv/send waits before re-checking the
    shutdown token. Not a deadline: polls repeat until data or shutdown.
    """
    
    drain_on_interrupt: bool = True
    """
    What to do when shutdown interrupts a payload read:
    True  - count what has arrived so far and answer with that count
    False - abandon the request like any other failed connection
    """
    
    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────
    
    log_level: str = "INFO"
    """
    Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    Logs go to stderr; stdout carries only the final report.
    """
    
    log_format: str = "text"
    """
    Per-connection log format: 'text' or 'json'.
    """
    
    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.
        
        PCC_HOST        Server host (default: 0.0.0.0)
        PCC_PORT        Server port (default: 0)
        PCC_BACKLOG     Listen backlog (default: 10)
        PCC_CHUNK_SIZE  Payload read size (default: 1024)
        PCC_LOG_LEVEL   Logging level (default: INFO)
        PCC_LOG_FORMAT  'text' or 'json' (default: text)
        """
        return cls(
            host=os.getenv("PCC_HOST", "0.0.0.0"),
            port=int(os.getenv("PCC_PORT", "0")),
            backlog=int(os.getenv("PCC_BACKLOG", "10")),
            chunk_size=int(os.getenv("PCC_CHUNK_SIZE", "1024")),
            log_level=os.getenv("PCC_LOG_LEVEL", "INFO"),
            log_format=os.getenv("PCC_LOG_FORMAT", "text"),
        )
    
    def validate(self) -> None:
        """
        Validate configuration values.
        
        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")
        
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}")


@dataclass
class ClientConfig:
    """Where to send requests and how big each send is."""
    
    host: str = "127.0.0.1"
    port: int = 0
    chunk_size: int = 1024
    
    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")
        
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
