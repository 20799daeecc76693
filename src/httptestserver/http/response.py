"""
=============================================================================
RESPONSE SERIALIZATION
=============================================================================

Turns a status, a header list and a body into the exact bytes written to
the client socket.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 201 Created\r\n              ← Status line
    Content-Type: application/json\r\n    ← Headers, in configured order
    Set-Cookie: a=1\r\n                   ← Duplicate names each get a line
    Set-Cookie: b=2\r\n
    \r\n                                  ← Empty line (separator)
    {"id": "42"}                          ← Body bytes, verbatim

Nothing is added behind the caller's back: no Content-Length, no Date,
no Server header. A test that needs one configures it on the resource.
Responses are framed by closing the connection (or, for streams, never
framed at all).

=============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Tuple, Union

from .status_codes import HTTPStatus, reason_phrase


HeaderList = List[Tuple[str, str]]


@dataclass
class HTTPResponse:
    """
    A response ready to be written to a connection.

    Headers are a list of (name, value) pairs rather than a dict so that
    insertion order and duplicate names survive serialization.
    """

    status: int = HTTPStatus.OK
    headers: HeaderList = field(default_factory=list)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 404 Not Found"
        """
        return f"{self.version} {int(self.status)} {reason_phrase(self.status)}"

    def head_bytes(self) -> bytes:
        """Status line, headers and the separating blank line."""
        lines = [self.status_line]
        for name, value in self.headers:
            lines.append(f"{name}: {value}")
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("utf-8")

    def to_bytes(self) -> bytes:
        """Complete response: head followed by the body."""
        return self.head_bytes() + self.body


def encode_body(body: Union[str, bytes]) -> bytes:
    """Encode a str body as UTF-8; bytes pass through untouched."""
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


def status_only(status: int) -> HTTPResponse:
    """
    Bare response with no headers and no body.

    Used for the 404 and 405 outcomes:

        HTTP/1.1 405 Method Not Allowed\r\n
        \r\n
    """
    return HTTPResponse(status=status)
