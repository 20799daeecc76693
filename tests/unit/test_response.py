"""
Unit tests for response serialization and status codes.
"""

from httptestserver.http.response import HTTPResponse, encode_body, status_only
from httptestserver.http.status_codes import HTTPStatus, reason_phrase


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.1 200 Ok"
        assert HTTPResponse(status=404).status_line == "HTTP/1.1 404 Not Found"

    def test_unknown_status(self):
        assert HTTPResponse(status=299).status_line == "HTTP/1.1 299 Unknown"

    def test_exact_bytes(self):
        """Nothing beyond the configured headers is written."""
        response = HTTPResponse(
            status=HTTPStatus.CREATED,
            headers=[("Content-Type", "application/json")],
            body=b'{"id": "42"}',
        )

        assert response.to_bytes() == (
            b"HTTP/1.1 201 Created\r\n"
            b"Content-Type: application/json\r\n"
            b"\r\n"
            b'{"id": "42"}'
        )

    def test_header_order_and_duplicates(self):
        response = HTTPResponse(headers=[("B", "2"), ("A", "1"), ("B", "3")])

        assert response.head_bytes() == b"HTTP/1.1 200 Ok\r\nB: 2\r\nA: 1\r\nB: 3\r\n\r\n"

    def test_empty_body(self):
        assert HTTPResponse().to_bytes() == b"HTTP/1.1 200 Ok\r\n\r\n"

    def test_status_only(self):
        assert status_only(HTTPStatus.METHOD_NOT_ALLOWED).to_bytes() == (
            b"HTTP/1.1 405 Method Not Allowed\r\n\r\n"
        )


class TestEncodeBody:
    """Tests for encode_body()."""

    def test_str_is_utf8(self):
        assert encode_body("héllo") == "héllo".encode("utf-8")

    def test_bytes_pass_through(self):
        assert encode_body(b"\xff\x00") == b"\xff\x00"


class TestHTTPStatus:
    """Tests for status codes and reason phrases."""

    def test_int_comparison(self):
        assert HTTPStatus.CREATED == 201

    def test_phrases(self):
        assert HTTPStatus.NOT_FOUND.phrase == "Not Found"
        assert reason_phrase(200) == "Ok"
        assert reason_phrase(HTTPStatus.NO_CONTENT) == "No Content"

    def test_phrase_wording(self):
        """Phrases are title-cased words without hyphens."""
        assert reason_phrase(203) == "Non Authoritative Information"
        assert reason_phrase(207) == "Multi Status"
        assert reason_phrase(418) == "I'm A Teapot"
        assert reason_phrase(505) == "Http Version Not Supported"

    def test_unknown_phrase(self):
        assert reason_phrase(299) == "Unknown"
        assert reason_phrase(999) == "Unknown"
