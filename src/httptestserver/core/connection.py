"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the operations the request handler
needs: read one complete request, write bytes, wait for the client to go
away, and close.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

A request may arrive split across several recv() calls:

    First recv():  "GET /user/4"
    Second recv(): "2 HTTP/1.1\r\n\r\n"

So reads are buffered until the \r\n\r\n header terminator is seen, then
until Content-Length body bytes are available.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    NEW ──► READING ──► PROCESSING ──────────────► CLOSING ──► CLOSED
                            │                                    ▲
                            ▼                                    │
                        STREAMING ───────────────────────────────┘
                                      (held open until the client
                                       disconnects or shutdown())

One request is served per connection. Plain responses are framed by
closing the connection; streamed responses are never framed and stay
open for later pushes.

Ownership: the worker thread that accepted the request owns the socket
and is the only one that calls close(). Other threads (broadcasts,
close_open_connections, server teardown) only call send() and
shutdown(); shutdown() wakes the owner blocked in wait_for_disconnect().

=============================================================================
"""

import socket
import threading
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and bookkeeping."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique identifier for log lines.
        state: Current lifecycle state.
        created_at: Timestamp when the connection was accepted.
        last_activity: Timestamp of the last read or write.
    """

    socket: socket.socket
    address: tuple[str, int]
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = None
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _write_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def is_closed(self) -> bool:
        return self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED)

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    read_request() Flow                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   while no \r\n\r\n in buffer:   recv() → buffer                │
        │   parse Content-Length from the header bytes                     │
        │   while body incomplete:         recv() → buffer                │
        │   return headers + body                                          │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        Returns:
            The request bytes, or None if the client closed the
            connection before sending a full header block.

        Raises:
            TimeoutError: If a read timeout is configured and expires.
            ValueError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Parser reports the short body
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            raise TimeoutError("Request read timeout")

    def _recv(self) -> bytes:
        """recv() that maps a reset or a local shutdown to end-of-stream."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError, ConnectionAbortedError):
            return b""
        except OSError:
            if self.is_closed:
                return b""
            raise

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Find Content-Length in raw header bytes.

        Needed before the request can be parsed, to know how many body
        bytes to wait for.
        """
        try:
            header_str = headers.decode("utf-8", errors="replace").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return max(int(line.split(":", 1)[1].strip()), 0)
        except (ValueError, IndexError):
            pass
        return 0

    def send(self, data: bytes) -> bool:
        """
        Write bytes to the client.

        Safe to call from any thread; writes are serialized so bytes of
        two concurrent sends never interleave.

        Returns:
            True if all bytes were handed to the kernel, False if the
            connection is closed or the client is gone.
        """
        with self._write_lock:
            if self.is_closed:
                return False
            try:
                self.socket.sendall(data)
                self.last_activity = time.time()
                return True
            except OSError as e:
                logger.debug(f"[{self.id}] Send failed: {e}")
                return False

    def wait_for_disconnect(self) -> None:
        """
        Block until the client disconnects or shutdown() is called.

        Anything the client sends while a stream is open is discarded.
        """
        with self._write_lock:
            if self.is_closed:
                return
            self.state = ConnectionState.STREAMING
        while True:
            try:
                chunk = self.socket.recv(self.buffer_size)
            except socket.timeout:
                continue
            except OSError:
                return
            if not chunk:
                return

    def shutdown(self) -> None:
        """
        Shut the socket down in both directions without releasing it.

        Called from threads that don't own the connection. The client
        sees end-of-stream and the owner's wait_for_disconnect() returns.
        """
        with self._write_lock:
            if self.is_closed:
                return
            self.state = ConnectionState.CLOSING
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Client already gone

    def close(self) -> None:
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN so the client reads end-of-stream
        2. drain what the client still sends, briefly
        3. close(): release the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        with self._write_lock:
            self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {time.time() - self.created_at:.3f}s"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
