"""
=============================================================================
LISTENING SOCKET
=============================================================================

Owns the listening TCP socket and the accept loop. Everything HTTP lives
above this layer; the loop only wraps each accepted client socket in a
Connection and hands it to a callback.

=============================================================================
LIFECYCLE
=============================================================================

    SocketServer(config)     socket() → setsockopt() → bind() → listen()
          │                  Binding happens here, so the OS-assigned port
          │                  is known before any thread starts and a busy
          │                  port fails the constructor with BindError.
          ▼
    serve(callback)          accept loop, normally run on its own thread
          │
          │   while running:
          │       accept()            ← wakes at least once per second
          │       Connection(...)
          │       callback(conn)
          ▼
    shutdown()               running = False, shutdown(SHUT_RDWR) on the
                             listener so a blocked accept() returns at once,
                             then close()

After shutdown() returns no further connection is accepted, and new
connection attempts are refused by the OS.

=============================================================================
"""

import socket
import logging
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class BindError(OSError):
    """The listening socket could not be bound to the requested address."""


class SocketServer:
    """
    TCP listener with an interruptible accept loop.

    Usage:
        listener = SocketServer(config)          # binds, may raise BindError
        thread = threading.Thread(target=listener.serve, args=(on_connection,))
        thread.start()
        ...
        listener.shutdown()
        thread.join()
    """

    def __init__(self, config: ServerConfig):
        """
        Create, bind and listen.

        Args:
            config: Server configuration (host, port, backlog, buffer sizes).

        Raises:
            BindError: If the address is unavailable.
        """
        self.config = config
        self._running = False
        self._socket: Optional[socket.socket] = self._create_socket()

        try:
            self._socket.bind((config.host, config.port))
            self._socket.listen(config.backlog)
        except OSError as e:
            self._socket.close()
            self._socket = None
            logger.error(f"Failed to bind to {config.host}:{config.port}: {e}")
            raise BindError(e.errno, f"Cannot bind {config.host}:{config.port}: {e.strerror}")

        self._address: Tuple[str, int] = self._socket.getsockname()[:2]
        logger.info(f"Listening on {self._address[0]}:{self._address[1]}")

    def _create_socket(self) -> socket.socket:
        """
        Create and configure the listening socket.

        SO_REUSEADDR: rebinding a fixed port right after a previous test's
        server closed it works despite TIME_WAIT.

        TCP_NODELAY: small writes (streamed lines) go out immediately
        instead of waiting for Nagle's algorithm to batch them.

        Accept timeout of 1s: the accept loop re-checks the running flag
        even where shutdown() on a listening socket does not wake accept().
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port), with the OS-assigned port filled in."""
        return self._address

    @property
    def port(self) -> int:
        return self._address[1]

    @property
    def is_running(self) -> bool:
        return self._running

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Blocks; run it on a dedicated thread.

        Args:
            connection_handler: Called with each accepted Connection. It
                must not block for long; the server submits the
                connection to its thread pool.
        """
        self._running = True
        try:
            self._accept_loop(connection_handler)
        finally:
            self._running = False
            self._close_socket()
            logger.info("Listener stopped")

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            sock = self._socket
            if sock is None:
                break
            try:
                client_socket, client_address = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            if not self._running:
                client_socket.close()
                break

            client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )

            try:
                connection_handler(conn)
            except Exception as e:
                logger.exception(f"[{conn.id}] Could not dispatch connection: {e}")
                conn.close()

    def shutdown(self):
        """
        Stop accepting. Idempotent and safe from any thread.

        A serve() loop that was never started is handled too: the socket
        is closed right away.
        """
        was_running = self._running
        self._running = False

        sock = self._socket
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Not connected; the accept timeout covers it

        if not was_running:
            self._close_socket()

    def _close_socket(self):
        sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass
