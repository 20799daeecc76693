"""
=============================================================================
TEST SERVER
=============================================================================

The object a test works with. It ties the listener, the worker pool and
the resource table together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       TEST SERVER                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   TestServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐    │
    │    │ SocketServer │    │  ThreadPool  │    │ ResourceRegistry │    │
    │    │ accept thread│    │ RequestHandler│   │ Resource ...     │    │
    │    └──────────────┘    └──────────────┘    └──────────────────┘    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
USAGE
=============================================================================

    with TestServer() as server:
        server.create_resource("/user/{id}") \\
            .header("Content-Type", "application/json") \\
            .body('{"id": "{path.id}"}')

        response = requests.get(f"{server.url}/user/42")
        assert response.json() == {"id": "42"}
        assert server.request_count == 1

The server is listening as soon as the constructor returns; port 0 (the
default) picks a free port, read back from ``server.port``.

=============================================================================
SHUTDOWN
=============================================================================

    close()
      1. mark stopping        streams opening from now on end at once
      2. stop the listener    new connections are refused
      3. close all streams    parked workers wake up and finish
      4. stop the pool        bounded by config.shutdown_timeout

=============================================================================
"""

import logging
import queue
import threading
from typing import List, Optional

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool
from .handlers import RequestHandler
from .http.registry import ResourceRegistry
from .recorder import RecordedRequest, RequestRecorder
from .resource import Resource


logger = logging.getLogger(__name__)


class TestServer:
    """
    Mock HTTP server for tests.

    Raises:
        BindError: From the constructor when the address is unavailable.
        ValueError: From the constructor when the configuration is invalid.
    """

    # Not a test class, despite the name
    __test__ = False

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._registry = ResourceRegistry()
        self._recorder = RequestRecorder()
        self._feed: Optional["queue.Queue[RecordedRequest]"] = None
        self._feed_lock = threading.Lock()
        self._stopping = threading.Event()
        self._close_lock = threading.Lock()
        self._closed = False

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._handler = RequestHandler(
            self._registry, self._recorder, self.config, self._stopping
        )

        self._thread_pool.start()
        self._accept_thread = threading.Thread(
            target=self._socket_server.serve,
            args=(self._handle_connection,),
            name=f"httptestserver-accept-{self.port}",
            daemon=True,
        )
        self._accept_thread.start()

        logger.info(f"Test server running at {self.url}")

    # =========================================================================
    # ADDRESS
    # =========================================================================

    @property
    def host(self) -> str:
        return self._socket_server.address[0]

    @property
    def port(self) -> int:
        return self._socket_server.port

    @property
    def url(self) -> str:
        """Base URL, e.g. ``http://127.0.0.1:50123``."""
        return f"http://{self.host}:{self.port}"

    # =========================================================================
    # RESOURCES
    # =========================================================================

    def create_resource(self, uri: str) -> Resource:
        """
        Register a new resource and return it for configuration.

        Resources are matched in creation order; the first whose
        pattern matches a request path answers it.

        Raises:
            ValueError: If the URI contains an invalid regex segment.
        """
        resource = self._registry.add(Resource(uri))
        logger.debug(f"Created resource {uri}")
        return resource

    @property
    def resources(self) -> List[Resource]:
        return self._registry.resources

    # =========================================================================
    # SERVER-WIDE RECORDING
    # =========================================================================

    @property
    def request_count(self) -> int:
        """Every parsed request, including those answered 404 or 405."""
        return self._recorder.count

    @property
    def received_requests(self) -> List[RecordedRequest]:
        return self._recorder.requests

    def requests(self) -> "queue.Queue[RecordedRequest]":
        """
        Feed of every request parsed from now on.

            feed = server.requests()
            client_under_test.ping()
            assert feed.get(timeout=2).path == "/ping"

        The server keeps a single feed: calling this again detaches the
        previous one, which keeps what it already holds but gets nothing new.
        """
        feed = self._recorder.subscribe()
        with self._feed_lock:
            previous, self._feed = self._feed, feed
        if previous is not None:
            self._recorder.unsubscribe(previous)
        return feed

    def wait_for_requests(self, count: int, timeout: Optional[float] = None) -> bool:
        """Block until the server parsed at least ``count`` requests."""
        return self._recorder.wait_for(count, timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand an accepted connection to the pool (runs on the accept thread)."""
        if self._stopping.is_set():
            conn.close()
            return
        try:
            submitted = self._thread_pool.submit(self._handler.handle, args=(conn,))
        except RuntimeError:
            submitted = False
        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, dropping connection")
            conn.close()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop the server. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        logger.info(f"Shutting down test server at {self.url}")
        self._stopping.set()

        self._socket_server.shutdown()
        self._accept_thread.join(timeout=self.config.shutdown_timeout)

        for resource in self._registry.resources:
            resource.close_open_connections()

        self._thread_pool.shutdown(wait=True, timeout=self.config.shutdown_timeout)
        logger.info("Test server stopped")

    def __enter__(self) -> "TestServer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "running"
        return f"<TestServer {self.url} {state}>"
