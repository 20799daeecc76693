"""
Unit tests for HTTP request parsing.
"""

import pytest

from httptestserver.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
)


@pytest.fixture
def parser() -> RequestParser:
    return RequestParser()


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, parser: RequestParser, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/user/42"
        assert request.target == "/user/42?filter=all&limit=10"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, parser: RequestParser, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parser.parse(sample_get_request)

        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.raw_headers[0] == ("Host", "localhost:8080")

    def test_parse_query_params(self, parser: RequestParser, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parser.parse(sample_get_request)

        assert request.query_params == {"filter": ["all"], "limit": ["10"]}

    def test_parse_post_with_body(self, parser: RequestParser, sample_post_request: bytes):
        """Test parsing POST request with JSON body."""
        request = parser.parse(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/users"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["content-length"] == str(len(request.body))
        assert request.body == b'{"name": "Ada", "email": "ada@example.com"}'

    def test_path_is_decoded_raw_path_is_not(self, parser: RequestParser):
        """Test URL-encoded path parsing."""
        raw = b"GET /a%20b/c?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parser.parse(raw)

        assert request.path == "/a b/c"
        assert request.raw_path == "/a%20b/c"
        assert request.query_params["q"] == ["hello world"]

    def test_blank_query_values_kept(self, parser: RequestParser):
        request = parser.parse(b"GET /x?flag=&other HTTP/1.1\r\n\r\n")

        assert request.query_params == {"flag": [""], "other": [""]}

    def test_repeated_query_key(self, parser: RequestParser):
        request = parser.parse(b"GET /x?tag=a&tag=b HTTP/1.1\r\n\r\n")

        assert request.query_params == {"tag": ["a", "b"]}

    def test_any_method_token_accepted(self, parser: RequestParser):
        """Unknown methods reach the resource table, which answers 405."""
        request = parser.parse(b"purge /cache HTTP/1.1\r\nHost: test\r\n\r\n")

        assert request.method == "PURGE"

    def test_dot_segments_not_rejected(self, parser: RequestParser):
        request = parser.parse(b"GET /../etc HTTP/1.1\r\n\r\n")

        assert request.raw_path == "/../etc"

    def test_parse_invalid_request_line(self, parser: RequestParser):
        """Test handling of malformed request line."""
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET\r\nHost: test\r\n\r\n")

    def test_parse_unsupported_version(self, parser: RequestParser):
        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(b"GET / HTTP/2.0\r\n\r\n")

        assert "version" in exc_info.value.message.lower()

    def test_parse_missing_terminator(self, parser: RequestParser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_parse_missing_headers(self, parser: RequestParser):
        """Test parsing request with no headers."""
        request = parser.parse(b"GET / HTTP/1.1\r\n\r\n")

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parser.parse(raw)

    def test_invalid_content_length(self, parser: RequestParser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\n")

    def test_short_body(self, parser: RequestParser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")

    def test_content_length_handling(self, parser: RequestParser):
        """Extra bytes after Content-Length are not part of the body."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\ntest bodyEXTRA"

        request = parser.parse(raw)

        assert request.body == b"test body"

    def test_case_insensitive_headers(self, parser: RequestParser):
        """Header lookups use lowercase names; raw headers keep the case sent."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parser.parse(raw)

        assert request.headers == {"content-type": "text/html"}
        assert request.raw_headers == [("CONTENT-TYPE", "text/html")]

    def test_duplicate_headers(self, parser: RequestParser):
        raw = b"GET / HTTP/1.1\r\nAccept: a\r\naccept: b\r\n\r\n"
        request = parser.parse(raw)

        assert request.headers["accept"] == "a, b"
        assert request.raw_headers == [("Accept", "a"), ("accept", "b")]

    def test_folded_header(self, parser: RequestParser):
        raw = b"GET / HTTP/1.1\r\nX-Long: one\r\n two\r\n\r\n"

        assert parser.parse(raw).headers["x-long"] == "one two"

    def test_malformed_header_line_skipped(self, parser: RequestParser):
        raw = b"GET / HTTP/1.1\r\nnot a header\r\nX-Ok: 1\r\n\r\n"

        assert parser.parse(raw).headers == {"x-ok": "1"}


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_target_defaults_to_path(self):
        request = HTTPRequest(method="GET", path="/x")

        assert request.target == "/x"
        assert request.raw_path == "/x"

    def test_user_agent_default(self):
        request = HTTPRequest(method="GET", path="/")

        assert request.user_agent == ""
