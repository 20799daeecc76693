"""
pytest configuration and fixtures.
"""

import socket
import time
from dataclasses import dataclass, field
from typing import Callable, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httptestserver import TestServer, ServerConfig


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /user/42?filter=all&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "Ada", "email": "ada@example.com"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Server configuration for tests: OS-assigned port, short shutdown."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=16,
        shutdown_timeout=2.0,
    )


@pytest.fixture
def server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """A running test server, closed after the test."""
    srv = TestServer(config)
    yield srv
    srv.close()


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# RAW SOCKET CLIENT
# =============================================================================
# The server writes responses without Content-Length and frames them by
# closing the connection, so the helpers below read to EOF rather than
# relying on an HTTP client library.


@dataclass
class RawResponse:
    """A response read off the wire."""
    status_line: str
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    raw: bytes = b""

    @property
    def status(self) -> int:
        return int(self.status_line.split(" ")[1])

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


def parse_raw_response(raw: bytes) -> RawResponse:
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = []
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers.append((name, value))
    return RawResponse(status_line=lines[0], headers=headers, body=body, raw=raw)


def build_request(
    method: str,
    target: str,
    headers: Optional[List[Tuple[str, str]]] = None,
    body: bytes = b"",
) -> bytes:
    lines = [f"{method} {target} HTTP/1.1", "Host: localhost"]
    for name, value in headers or []:
        lines.append(f"{name}: {value}")
    if body:
        lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + body


def read_to_eof(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(8192)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


class StreamClient:
    """A client holding a streamed connection open."""

    def __init__(self, port: int, target: str, timeout: float = 5.0):
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=timeout)
        self.sock.sendall(build_request("GET", target))
        self.buffer = b""

    def read_until(self, marker: bytes, timeout: float = 5.0) -> bytes:
        """Read until ``marker`` was received; returns everything so far."""
        deadline = time.time() + timeout
        while marker not in self.buffer:
            if time.time() > deadline:
                raise AssertionError(f"Timed out waiting for {marker!r}, got {self.buffer!r}")
            chunk = self.sock.recv(8192)
            if not chunk:
                raise AssertionError(f"EOF before {marker!r}, got {self.buffer!r}")
            self.buffer += chunk
        return self.buffer

    def read_to_eof(self) -> bytes:
        self.buffer += read_to_eof(self.sock)
        return self.buffer

    def close(self):
        self.sock.close()


@pytest.fixture
def send_request() -> Callable[..., RawResponse]:
    """
    Send one request to a server and read the response to EOF.

        response = send_request(server, "GET", "/user/42")
    """
    def _send(
        server: TestServer,
        method: str,
        target: str,
        headers: Optional[List[Tuple[str, str]]] = None,
        body: bytes = b"",
        timeout: float = 5.0,
    ) -> RawResponse:
        with socket.create_connection(("127.0.0.1", server.port), timeout=timeout) as sock:
            sock.sendall(build_request(method, target, headers, body))
            return parse_raw_response(read_to_eof(sock))

    return _send


@pytest.fixture
def open_stream() -> Generator[Callable[..., StreamClient], None, None]:
    """Open streamed connections; all are closed after the test."""
    clients: List[StreamClient] = []

    def _open(server: TestServer, target: str) -> StreamClient:
        client = StreamClient(server.port, target)
        clients.append(client)
        return client

    yield _open

    for client in clients:
        client.close()


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def eventually() -> Callable[..., bool]:
    """Poll a condition until it holds or the timeout passes."""
    return wait_until
