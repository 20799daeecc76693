"""
=============================================================================
RESOURCES
=============================================================================

A Resource is one mocked endpoint: a URI pattern plus the response to
give when a request matches it. Resources are created by the server and
configured with a fluent API:

    server.create_resource("/user/{id}?verbose=*") \\
        .method("GET", "PUT") \\
        .status(200) \\
        .header("Content-Type", "application/json") \\
        .body('{"id": "{path.id}", "verbose": "{query.verbose}"}')

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       Resource Defaults                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │   methods    {GET}                                                  │
    │   status     200                                                    │
    │   headers    none                                                   │
    │   body       empty                                                  │
    │   streaming  off                                                    │
    │   delay      none                                                   │
    └─────────────────────────────────────────────────────────────────────┘

The configuration may be changed at any time, also while requests are
being served. Each request works from one ResourceState snapshot taken
under the resource lock, so it never sees half of an update.

=============================================================================
"""

import threading
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple, Union

from .http.methods import Method, normalize_method
from .http.pattern import Pattern
from .http.response import HeaderList
from .http.status_codes import HTTPStatus
from .recorder import RecordedRequest, RequestRecorder
from .streaming import ConnectionManager


@dataclass(frozen=True)
class ResourceState:
    """Immutable copy of a resource's response configuration."""

    methods: FrozenSet[str] = frozenset({Method.GET.value})
    status: int = HTTPStatus.OK
    headers: Tuple[Tuple[str, str], ...] = ()
    body: Union[str, bytes] = ""
    streaming: bool = False
    delay: Optional[float] = None

    def allows(self, method: str) -> bool:
        return normalize_method(method) in self.methods

    @property
    def header_list(self) -> HeaderList:
        return list(self.headers)


class Resource:
    """
    A mocked endpoint.

    Configuration methods return the resource itself so calls chain.
    Recording and streaming helpers do the same where they don't return
    a value.
    """

    def __init__(self, uri: str):
        """
        Args:
            uri: URI template, e.g. ``/user/{id}?filter=*``.

        Raises:
            ValueError: If the template contains an invalid regex segment.
        """
        self.pattern = Pattern.compile(uri)
        self._lock = threading.Lock()
        self._methods: FrozenSet[str] = frozenset({Method.GET.value})
        self._status: int = HTTPStatus.OK
        self._headers: List[Tuple[str, str]] = []
        self._body: Union[str, bytes] = ""
        self._streaming = False
        self._delay: Optional[float] = None

        self.recorder = RequestRecorder()
        self.connections = ConnectionManager(name=uri)

    @property
    def uri(self) -> str:
        return self.pattern.uri

    def __repr__(self) -> str:
        return f"Resource({self.uri!r})"

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def method(self, *methods: Union[str, Method]) -> "Resource":
        """
        Replace the set of accepted methods.

        Other methods on a matching path get 405 Method Not Allowed.
        """
        if not methods:
            raise ValueError("At least one method is required")
        with self._lock:
            self._methods = frozenset(normalize_method(m) for m in methods)
        return self

    def status(self, code: int) -> "Resource":
        """Set the response status code. Any code is written as given."""
        with self._lock:
            self._status = int(code)
        return self

    def header(self, name: str, value: str) -> "Resource":
        """
        Append a response header.

        Headers are written in the order they were added; adding the
        same name twice produces two header lines.
        """
        with self._lock:
            self._headers.append((name, str(value)))
        return self

    def body(self, body: Union[str, bytes]) -> "Resource":
        """
        Set the response body.

        A str body is a template: ``{path.<name>}`` and ``{query.<name>}``
        tokens are replaced with values captured from the request. A
        bytes body is written verbatim.
        """
        with self._lock:
            self._body = body
        return self

    def stream(self, enabled: bool = True) -> "Resource":
        """Keep connections open after the body so send() can push more data."""
        with self._lock:
            self._streaming = enabled
        return self

    def delay(self, seconds: Optional[float]) -> "Resource":
        """Wait this long before writing each response. None disables."""
        if seconds is not None and seconds < 0:
            raise ValueError("delay must be >= 0")
        with self._lock:
            self._delay = seconds
        return self

    @property
    def is_streaming(self) -> bool:
        with self._lock:
            return self._streaming

    def snapshot(self) -> ResourceState:
        """Consistent copy of the current configuration."""
        with self._lock:
            return ResourceState(
                methods=self._methods,
                status=self._status,
                headers=tuple(self._headers),
                body=self._body,
                streaming=self._streaming,
                delay=self._delay,
            )

    # =========================================================================
    # RECORDED REQUESTS
    # =========================================================================

    @property
    def request_count(self) -> int:
        """Number of requests served by this resource (404/405 excluded)."""
        return self.recorder.count

    @property
    def requests(self) -> List[RecordedRequest]:
        return self.recorder.requests

    @property
    def last_request(self) -> Optional[RecordedRequest]:
        return self.recorder.last

    def wait_for_requests(self, count: int, timeout: Optional[float] = None) -> bool:
        """Block until at least ``count`` requests were served, or timeout."""
        return self.recorder.wait_for(count, timeout)

    # =========================================================================
    # STREAMING
    # =========================================================================

    def send(self, data: Union[str, bytes]) -> "Resource":
        """Push data, as is, to every open streamed connection."""
        self.connections.send(data)
        return self

    def send_line(self, text: str) -> "Resource":
        """Push text plus a line break to every open streamed connection."""
        self.connections.send_line(text)
        return self

    def close_open_connections(self) -> "Resource":
        """
        End every open stream. The resource keeps streaming: new clients
        get a fresh open connection.
        """
        self.connections.close_all()
        return self

    @property
    def open_connections_count(self) -> int:
        return self.connections.count
