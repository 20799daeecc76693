"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables of a TestServer in one dataclass. The defaults are what a
test suite wants: loopback only, an OS-assigned port, quiet logging.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION SOURCES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httptestserver --port 8089                      │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_TEST_PORT=8089 python -m httptestserver              │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Configuration is validated eagerly when a server is created, so a bad
value fails the test that made it, not some later request.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for a TestServer.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers, queue_size, shutdown_timeout

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # =========================================================================
    # NETWORK SETTINGS
    # =========================================================================

    host: str = "127.0.0.1"
    """Address to bind. Loopback keeps mocks invisible to the network."""

    port: int = 0
    """
    Port to listen on. 0 lets the OS pick a free port; the chosen port
    is available as TestServer.port right after construction.
    """

    backlog: int = 128
    """Maximum number of connections the OS queues before refusing."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    timeout: Optional[float] = None
    """
    Read timeout for client sockets in seconds.
    None = no timeout; a streamed connection may stay open for the whole
    test, and a slow client is never cut off.
    """

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Requests larger than this are dropped without a response."""

    # =========================================================================
    # THREADING SETTINGS
    # =========================================================================

    min_workers: int = 2
    """Worker threads started with the server."""

    max_workers: int = 64
    """
    Upper bound on worker threads. Every open stream holds one worker,
    so this also bounds the number of simultaneous streamed clients.
    """

    queue_size: int = 128
    """Accepted connections that may wait for a worker."""

    shutdown_timeout: float = 5.0
    """Seconds close() waits for in-flight requests to finish."""

    # =========================================================================
    # LOGGING
    # =========================================================================

    log_level: str = "WARNING"
    """Level applied by the command-line entry point."""

    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_TEST_HOST        Bind address (default: 127.0.0.1)
        HTTP_TEST_PORT        Port (default: 0, OS-assigned)
        HTTP_TEST_WORKERS     Max worker threads (default: 64)
        HTTP_TEST_LOG_LEVEL   Logging level (default: WARNING)
        HTTP_TEST_LOG_FORMAT  text or json (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("HTTP_TEST_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_TEST_PORT", "0")),
            max_workers=int(os.getenv("HTTP_TEST_WORKERS", "64")),
            log_level=os.getenv("HTTP_TEST_LOG_LEVEL", "WARNING"),
            log_format=os.getenv("HTTP_TEST_LOG_FORMAT", "text"),
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

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 0:
            raise ValueError("queue_size must be >= 0")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
