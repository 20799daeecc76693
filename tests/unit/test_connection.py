"""
Unit tests for Connection reads, writes and close.
"""

import socket
import threading
import time

import pytest

from httptestserver.core.connection import Connection, ConnectionState


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    client_side.settimeout(5)
    conn = Connection(socket=server_side, address=("local", 0))
    yield conn, client_side
    client_side.close()
    server_side.close()


class TestReadRequest:
    """Tests for buffered request reads."""

    def test_request_split_across_packets(self, pair):
        conn, client = pair

        def trickle():
            for part in (b"GET /user/4", b"2 HTTP/1.1\r\nHost: x\r", b"\n\r\n"):
                client.sendall(part)
                time.sleep(0.02)

        sender = threading.Thread(target=trickle)
        sender.start()
        data = conn.read_request()
        sender.join()

        assert data == b"GET /user/42 HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.state is ConnectionState.PROCESSING

    def test_waits_for_body(self, pair):
        conn, client = pair
        client.sendall(b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nab")
        threading.Timer(0.05, client.sendall, args=(b"cde",)).start()

        assert conn.read_request().endswith(b"\r\n\r\nabcde")

    def test_eof_before_headers(self, pair):
        conn, client = pair
        client.sendall(b"GET / HT")
        client.shutdown(socket.SHUT_WR)

        assert conn.read_request() is None

    def test_too_large(self, pair):
        conn, client = pair
        conn.max_request_size = 64
        client.sendall(b"GET / HTTP/1.1\r\nX: " + b"a" * 100)

        with pytest.raises(ValueError):
            conn.read_request()

    def test_timeout(self):
        server_side, client_side = socket.socketpair()
        try:
            conn = Connection(socket=server_side, address=("local", 0), timeout=0.05)
            with pytest.raises(TimeoutError):
                conn.read_request()
        finally:
            client_side.close()
            server_side.close()


class TestWriteAndClose:
    """Tests for send(), shutdown() and close()."""

    def test_send(self, pair):
        conn, client = pair

        assert conn.send(b"hello") is True
        assert client.recv(5) == b"hello"

    def test_close_sends_eof(self, pair):
        conn, client = pair
        conn.send(b"bye")

        closer = threading.Thread(target=conn.close)
        closer.start()
        data = b""
        while True:
            chunk = client.recv(100)
            if not chunk:
                break
            data += chunk
        client.close()
        closer.join(timeout=5)

        assert data == b"bye"
        assert conn.state is ConnectionState.CLOSED
        assert conn.send(b"more") is False

    def test_close_is_idempotent(self, pair):
        conn, client = pair
        client.close()

        conn.close()
        conn.close()

        assert conn.state is ConnectionState.CLOSED

    def test_shutdown_blocks_further_sends(self, pair):
        conn, client = pair

        conn.shutdown()

        assert conn.is_closed
        assert conn.send(b"x") is False
        assert client.recv(1) == b""

    def test_context_manager_closes(self, pair):
        conn, client = pair
        client.close()

        with conn:
            pass

        assert conn.state is ConnectionState.CLOSED
