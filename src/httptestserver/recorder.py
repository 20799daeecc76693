"""
=============================================================================
REQUEST RECORDING
=============================================================================

Keeps what the server received so tests can assert on it afterwards.

Every resource owns a RequestRecorder holding the requests that resolved
to it; the server owns one more that sees every parsed request, including
the ones answered with 404 or 405.

    server = TestServer()
    resource = server.create_resource("/orders")
    resource.method("POST")

    client_under_test.place_order()

    assert resource.wait_for_requests(1, timeout=2)
    order = resource.last_request
    assert order.method == "POST"
    assert order.header("content-type") == "application/json"

Recording happens in the handler thread BEFORE the response is written.
A test that has seen any byte of the response is therefore guaranteed to
find the request already recorded.

=============================================================================
"""

import queue
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .http.request import HTTPRequest


@dataclass(frozen=True)
class RecordedRequest:
    """
    Immutable snapshot of one received request.

    Attributes:
        method:  Method token ("GET", "POST", ...)
        path:    Path as sent by the client (still percent-encoded)
        query:   Query name → list of values
        headers: Header name (as sent) → value
        body:    Body bytes
        index:   Arrival order within the recorder, starting at 0
    """

    method: str
    path: str
    query: Dict[str, List[str]] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    index: int = 0

    @classmethod
    def from_request(cls, request: HTTPRequest, index: int) -> "RecordedRequest":
        headers: Dict[str, str] = {}
        for name, value in request.raw_headers:
            headers[name] = f"{headers[name]}, {value}" if name in headers else value
        return cls(
            method=request.method,
            path=request.raw_path,
            query={k: list(v) for k, v in request.query_params.items()},
            headers=headers,
            body=request.body,
            index=index,
        )

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    @property
    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.body.decode("utf-8", errors="replace")


class RequestRecorder:
    """
    Append-only, thread-safe log of received requests.

    The counter and the list are updated together under one condition
    variable, so ``count == len(requests)`` holds at every observation.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._requests: List[RecordedRequest] = []
        self._subscribers: List["queue.Queue[RecordedRequest]"] = []

    def record(self, request: HTTPRequest) -> RecordedRequest:
        """Snapshot and append a request, waking any waiters."""
        with self._condition:
            recorded = RecordedRequest.from_request(request, len(self._requests))
            self._requests.append(recorded)
            for subscriber in self._subscribers:
                subscriber.put(recorded)
            self._condition.notify_all()
        return recorded

    @property
    def count(self) -> int:
        with self._condition:
            return len(self._requests)

    @property
    def requests(self) -> List[RecordedRequest]:
        """Copy of the recorded requests in arrival order."""
        with self._condition:
            return list(self._requests)

    @property
    def last(self) -> Optional[RecordedRequest]:
        with self._condition:
            return self._requests[-1] if self._requests else None

    def wait_for(self, count: int, timeout: Optional[float] = None) -> bool:
        """
        Block until at least ``count`` requests were recorded.

        Args:
            count: Number of requests to wait for.
            timeout: Seconds to wait; None waits forever.

        Returns:
            True if the count was reached, False on timeout.
        """
        with self._condition:
            return self._condition.wait_for(
                lambda: len(self._requests) >= count, timeout=timeout
            )

    def subscribe(self) -> "queue.Queue[RecordedRequest]":
        """
        Get a queue that receives every request recorded from now on.

            feed = recorder.subscribe()
            ...
            request = feed.get(timeout=1)
        """
        feed: "queue.Queue[RecordedRequest]" = queue.Queue()
        with self._condition:
            self._subscribers.append(feed)
        return feed

    def unsubscribe(self, feed: "queue.Queue[RecordedRequest]") -> None:
        """Stop delivering to a feed. Unknown feeds are ignored."""
        with self._condition:
            if feed in self._subscribers:
                self._subscribers.remove(feed)
