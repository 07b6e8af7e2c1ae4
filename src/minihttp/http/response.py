"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses byte-for-byte.

=============================================================================
WIRE FORMAT
=============================================================================

A response with a body:

    HTTP/1.1 200 OK\r\n                   ← Status line
    Content-Type: text/plain\r\n          ← Always first
    Content-Encoding: gzip\r\n            ← Only when negotiated
    Content-Length: 23\r\n                ← Always last, always exact
    \r\n                                  ← End of headers
    <body bytes>

A response without a body (root, 404, 201):

    HTTP/1.1 404 Not Found\r\n
    \r\n

No Date, Server or Connection headers are ever added. The header order
is fixed regardless of the order in which headers were set, so middleware
can add Content-Encoding after the handler set Content-Type.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .status_codes import HTTPStatus


CRLF = "\r\n"

# Emission order for the headers the server knows about.
# Anything else follows in insertion order.
HEADER_ORDER = ("Content-Type", "Content-Encoding", "Content-Length")


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder (or ok/created/not_found) to construct one.

        Handler returns          to_bytes()              Socket sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def has_content(self) -> bool:
        """True when the response carries content headers."""
        return "Content-Type" in self.headers

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body; strings are encoded as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def ordered_headers(self) -> list:
        """
        Headers as (name, value) pairs in emission order.

        Content-Length is recomputed from the final body whenever the
        response has content, so it can never drift from what is sent
        (e.g. after compression).
        """
        headers = dict(self.headers)
        if self.has_content:
            headers["Content-Length"] = str(len(self.body))

        ordered = [(name, headers.pop(name)) for name in HEADER_ORDER if name in headers]
        ordered.extend(headers.items())
        return ordered

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

        Returns:
            Status line, headers, blank line and body as one bytes object.
        """
        lines = [self.status_line]
        for name, value in self.ordered_headers():
            lines.append(f"{name}: {value}")

        head = CRLF.join(lines) + CRLF + CRLF
        return head.encode("utf-8") + self.body


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text("hello")
            .build())

    Each method returns self, except build().
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        """Set the HTTP status code."""
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a single response header."""
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        """Set the Content-Type header."""
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the raw body (strings are encoded as UTF-8)."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str, content_type: str = "text/plain") -> "ResponseBuilder":
        """
        Set a plain text body.

        The body is the UTF-8 encoding of the text, so Content-Length
        counts bytes, not characters ("héllo" is 6 bytes).
        """
        return self.content_type(content_type).body(text.encode("utf-8"))

    def octets(self, content: bytes) -> "ResponseBuilder":
        """Set a binary body served as application/octet-stream."""
        return self.content_type("application/octet-stream").body(content)

    def build(self) -> HTTPResponse:
        """Build and return the HTTPResponse object."""
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )

    def to_bytes(self) -> bytes:
        """Build and serialize the response in one step."""
        return self.build().to_bytes()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(text: Optional[str] = None) -> HTTPResponse:
    """
    Create a 200 OK response.

    With no argument the response is bare (status line only), which is
    what the root route sends. With a string it is a text/plain response.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if text is not None:
        builder.text(text)
    return builder.build()


def created() -> HTTPResponse:
    """Create a bare 201 Created response."""
    return ResponseBuilder().status(HTTPStatus.CREATED).build()


def not_found() -> HTTPResponse:
    """Create a bare 404 Not Found response."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()
