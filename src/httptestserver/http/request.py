"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses the raw bytes of one HTTP/1.1 request into an HTTPRequest.

The parser is deliberately lenient: this server exists to be pointed at
by the code under test, and an unusual method or path should reach the
resource table (and produce a 404/405 the test can see) rather than be
rejected up front. Only bytes that cannot be read as a request at all
raise HTTPParseError, and the connection is then closed without a
response and without being recorded.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    POST /user/42?filter=all HTTP/1.1\r\n       ← Request line
    ─┬── ──────────┬───────── ────┬───
     │             │              │
   Method        Target        Version
                   │
          ┌────────┴────────┐
        Path          Query string
      /user/42         filter=all

    Host: localhost:8080\r\n                     ← Headers
    Content-Type: application/json\r\n
    Content-Length: 13\r\n
    \r\n                                         ← End of headers
    {"name": "x"}                                ← Body (Content-Length bytes)

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple
from urllib.parse import parse_qs, unquote, urlsplit
import re


class HTTPParseError(Exception):
    """
    Raised when request bytes cannot be parsed.

    Attributes:
        message: What went wrong, for the debug log.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Upper-case method token ("GET", "POST", ...)
        target:         Request target as sent, e.g. "/a%20b?x=1"
        path:           Percent-decoded path without query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header name (lowercase) → value, duplicates joined
        raw_headers:    Header (name, value) pairs exactly as received
        query_params:   Query name → list of values
        body:           Body bytes (Content-Length bytes)
        client_address: (ip, port) of the client
        raw:            The unparsed request bytes
    """

    method: str
    path: str
    target: str = ""
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    raw_headers: List[Tuple[str, str]] = field(default_factory=list)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)
    raw: bytes = b""

    def __post_init__(self):
        if not self.target:
            self.target = self.path

    @property
    def raw_path(self) -> str:
        """The path component of the target, still percent-encoded."""
        return self.target.partition("?")[0]

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Find the \r\n\r\n header terminator      → missing: HTTPParseError
        2. Parse the request line                    → malformed: HTTPParseError
        3. Parse header lines (lenient)
        4. Slice the body by Content-Length          → short: HTTPParseError
        5. Split target into decoded path + query

    ==========================================================================
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Requests larger than this are rejected.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: Bytes of one request (headers plus body).
            client_address: Client's (ip, port), kept for logging.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the bytes are not a readable request.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes")

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        raw_headers = self._parse_headers(lines[1:])

        headers: Dict[str, str] = {}
        for name, value in raw_headers:
            key = name.lower()
            if key in headers:
                headers[key] += ", " + value
            else:
                headers[key] = value

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {headers['content-length']!r}")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        body = body[:content_length]

        split = urlsplit(target)
        path = unquote(split.path) or "/"
        query_params = parse_qs(split.query, keep_blank_values=True)

        return HTTPRequest(
            method=method,
            path=path,
            target=target,
            version=version,
            headers=headers,
            raw_headers=raw_headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        """
        Parse "METHOD SP TARGET SP VERSION".

        Any alphabetic method token is accepted; the resource table
        decides whether it is allowed.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}")

        return method.upper(), target, version

    def _parse_headers(self, lines: List[str]) -> List[Tuple[str, str]]:
        """
        Parse header lines into (name, value) pairs, keeping their order
        and original case.

        Continuation lines (leading whitespace) are folded into the
        previous header. Malformed lines are skipped.
        """
        headers: List[Tuple[str, str]] = []

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if headers:
                    name, value = headers[-1]
                    headers[-1] = (name, f"{value} {line.strip()}")
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            headers.append((name.strip(), value.strip()))

        return headers
