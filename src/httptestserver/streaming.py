"""
=============================================================================
STREAMED RESPONSES
=============================================================================

A streaming resource answers each request with its status line, headers
and initial body, and then keeps the connection open. The test pushes
more data later, and every client that is still connected receives it:

    resource = server.create_resource("/events").stream()
    resource.body("event: ready\n")

    client_under_test.subscribe()              # connects, reads "ready"
    resource.send_line("event: update")        # every open client gets it
    resource.close_open_connections()          # clients see end-of-stream

=============================================================================
CONNECTION TRACKING
=============================================================================

    handler thread                         test thread
    ──────────────                         ───────────
    attach(conn, head+body) ─┐
        write initial bytes  │ lock         send(data) ─┐
        append conn          │                 for conn in order:   │ lock
    ─────────────────────────┘                     conn.send(data)  │
    conn.wait_for_disconnect()                     failed → drop    │
        ...                                 ────────────────────────┘
    detach(conn)  (EOF or shutdown)
    conn.close()

Writing the initial bytes inside the lock means a broadcast can never
reach a client before its head: a send() either runs before attach (and
the client misses it) or after (and the client gets it after the body).

Only the handler thread closes a connection. close_all() shuts sockets
down, which ends wait_for_disconnect(); the handler then detaches and
closes.

=============================================================================
"""

import logging
import threading
from typing import List, Union

from .core.connection import Connection


logger = logging.getLogger(__name__)


class ConnectionManager:
    """Thread-safe set of open streamed connections for one resource."""

    def __init__(self, name: str = ""):
        self.name = name
        self._lock = threading.Lock()
        self._connections: List[Connection] = []

    def attach(self, conn: Connection, initial: bytes) -> bool:
        """
        Write the response head and initial body, then start tracking.

        Returns:
            False if the client was already gone; the connection is then
            not tracked.
        """
        with self._lock:
            if not conn.send(initial):
                return False
            self._connections.append(conn)
        logger.debug(f"[{conn.id}] Stream opened on {self.name}")
        return True

    def detach(self, conn: Connection) -> None:
        """Stop tracking a connection. Unknown connections are ignored."""
        with self._lock:
            if conn in self._connections:
                self._connections.remove(conn)
                logger.debug(f"[{conn.id}] Stream closed on {self.name}")

    def send(self, data: Union[str, bytes]) -> int:
        """
        Broadcast data to every open connection, in connect order.

        Connections whose write fails are dropped and shut down; the
        others still receive the data.

        Returns:
            Number of connections the data was delivered to.
        """
        payload = data.encode("utf-8") if isinstance(data, str) else data
        with self._lock:
            delivered: List[Connection] = []
            failed: List[Connection] = []
            for conn in self._connections:
                (delivered if conn.send(payload) else failed).append(conn)
            self._connections = delivered

        for conn in failed:
            logger.debug(f"[{conn.id}] Client gone, dropped from {self.name}")
            conn.shutdown()
        return len(delivered)

    def send_line(self, text: str) -> int:
        """Broadcast text followed by a single line break."""
        return self.send(text + "\n")

    def close_all(self) -> int:
        """
        Shut down every open connection and stop tracking them.

        Returns:
            Number of connections closed.
        """
        with self._lock:
            closing, self._connections = self._connections, []

        for conn in closing:
            conn.shutdown()
        if closing:
            logger.debug(f"Closed {len(closing)} stream(s) on {self.name}")
        return len(closing)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._connections)
