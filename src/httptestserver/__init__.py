"""
=============================================================================
HTTPTESTSERVER - Mock HTTP Endpoints for Test Suites
=============================================================================

Start a real HTTP server inside a test, declare the endpoints the code
under test is going to call, and assert on what it sent.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   test ──create_resource()──► TestServer ◄──HTTP── code under test  │
    │     ▲                             │                                  │
    │     └────── request_count, ───────┘                                  │
    │             last_request, send_line()                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FEATURES
=============================================================================

    URI patterns      /user/{id}, /files/.*, /hello/[0-9]+, ?filter=*
    Body templates    {"id": "{path.id}", "filter": "{query.filter}"}
    Method sets       405 for a known path with a method not allowed
    Recording         per-resource and server-wide, with wait helpers
    Streaming         keep connections open and push lines to all clients
    Delays            slow endpoints for timeout tests

=============================================================================
QUICK START
=============================================================================

    from httptestserver import TestServer

    def test_fetches_user():
        with TestServer() as server:
            users = server.create_resource("/user/{id}") \\
                .header("Content-Type", "application/json") \\
                .body('{"id": "{path.id}"}')

            client = UserClient(base_url=server.url)
            assert client.get_user("42").id == "42"
            assert users.request_count == 1

    def test_streams_events():
        with TestServer() as server:
            events = server.create_resource("/events").stream().body("ready\\n")

            listener = EventListener(f"{server.url}/events")
            listener.start()

            events.send_line("tick")
            events.close_open_connections()

=============================================================================
"""

__version__ = "1.0.0"

from .server import TestServer
from .resource import Resource, ResourceState
from .recorder import RecordedRequest
from .config import ServerConfig
from .core import BindError
from .http import HTTPStatus, Method

__all__ = [
    "TestServer",
    "Resource",
    "ResourceState",
    "RecordedRequest",
    "ServerConfig",
    "BindError",
    "HTTPStatus",
    "Method",
    "__version__",
]
