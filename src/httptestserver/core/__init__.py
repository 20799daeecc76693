"""
=============================================================================
CORE NETWORKING
=============================================================================

Transport layer of the test server. Nothing in here knows about
resources; it accepts TCP connections and runs work for them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► Connection ──submit──► ThreadPool        │
    │   (listener thread)        (one per client)       (workers run      │
    │                                                     RequestHandler)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Thread-per-connection: each connection holds one worker for its whole
life. Plain requests release it within milliseconds; streamed ones hold
it until the client leaves, which is why the pool grows on demand.

=============================================================================
"""

from .socket_server import SocketServer, BindError
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",     # Listener and accept loop
    "BindError",        # Raised when the address is unavailable
    "Connection",       # One client socket
    "ConnectionState",  # Connection lifecycle states
    "ThreadPool",       # Workers that serve connections
]
