"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw byte stream of one TCP connection into an HTTPRequest.

Unlike a buffer-everything parser, this one reads LINE BY LINE from a
buffered stream, exactly the way the bytes arrive on the wire:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHAT THE PARSER CONSUMES                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   POST /files/notes.txt HTTP/1.1\r\n   ← readline(): request line   │
    │   Host: localhost\r\n                  ← readline(): header         │
    │   Content-Length: 5\r\n                ← readline(): header         │
    │   \r\n                                 ← readline(): end of headers │
    │   hello                                ← read(5): body              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The stream can be anything with readline() and read(n):
- socket.makefile("rb") in the server
- io.BytesIO in tests

=============================================================================
PARSING POLICY
=============================================================================

    Situation                           Result
    ─────────────────────────────────   ──────────────────────────────────
    Stream closed before any bytes      None ("no request")
    Request line not 3 tokens           HTTPParseError
    Header line without exactly 1 ':'   Line dropped, parsing continues
    Stream closed inside headers        Headers read so far are kept
    POST with Content-Length: N         Exactly N bytes read as body
    Stream closed inside body           Truncated body, no error
    POST without Content-Length         Empty body
    Bad Content-Length value            HTTPParseError

Header names are folded to lowercase when stored, and get_header() folds
its argument too. A repeated header replaces the earlier value.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional
import io
import logging


logger = logging.getLogger(__name__)


class HTTPParseError(ValueError):
    """
    Raised when a request cannot be parsed.

    There is no 400 response in this server: a parse error is fatal for
    the connection, which is closed without writing anything.
    """


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Attributes:
        method:         Verb token from the request line (not validated)
        path:           Raw request target, never decoded or split on '?'
        version:        Version token from the request line (not validated)
        headers:        Header table, lowercase names → trimmed values
        body:           Raw body bytes (only POST with Content-Length)
        path_params:    Filled by the router ({"remainder": ...})
        client_address: (ip, port) of the client, for logging
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: tuple = ("", 0)

    @property
    def user_agent(self) -> Optional[str]:
        """The User-Agent header, or None when the client sent none."""
        return self.headers.get("user-agent")

    @property
    def accept_encoding(self) -> str:
        """The raw Accept-Encoding header ("" when absent)."""
        return self.headers.get("accept-encoding", "")

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a header value (case-insensitive lookup).

        Example:
            request.get_header("Content-Length")
            request.get_header("content-length")   # same thing
        """
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Reads one HTTP request from a binary stream.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          parse() flow                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   readline() ──► None? ──────────────────────────► return None      │
    │       │                                                              │
    │       ▼                                                              │
    │   _parse_request_line()   split on " ", need 3 tokens               │
    │       │                                                              │
    │       ▼                                                              │
    │   _read_header_lines()    until "" or end of stream                 │
    │       │                                                              │
    │       ▼                                                              │
    │   _parse_headers()        "name: value" → {name.lower(): value}     │
    │       │                                                              │
    │       ▼                                                              │
    │   _read_body()            POST + Content-Length only                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    # Methods whose Content-Length is honoured
    BODY_METHODS = frozenset({"POST"})

    def __init__(self, encoding: str = "utf-8", max_body_size: Optional[int] = None):
        """
        Initialize the request parser.

        Args:
            encoding: Charset used to decode the request line and headers.
                      Undecodable bytes are replaced, never fatal.
            max_body_size: Largest Content-Length accepted (None = no limit).
        """
        self.encoding = encoding
        self.max_body_size = max_body_size

    def parse(
        self,
        stream: BinaryIO,
        client_address: tuple = ("", 0)
    ) -> Optional[HTTPRequest]:
        """
        Parse one request from the stream.

        Args:
            stream: Binary stream positioned at the start of a request.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            The parsed request, or None if the stream was already closed.

        Raises:
            HTTPParseError: If the request line or Content-Length is invalid.
        """
        first_line = self._read_line(stream)
        if first_line is None:
            return None

        method, path, version = self._parse_request_line(first_line)
        headers = self._parse_headers(self._read_header_lines(stream))

        body = b""
        if method in self.BODY_METHODS:
            body = self._read_body(stream, headers)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body,
            client_address=client_address,
        )

    def _read_line(self, stream: BinaryIO) -> Optional[str]:
        """
        Read one line and strip its terminator.

        CRLF is the HTTP line ending, but a bare LF is accepted as well.

        Returns:
            The decoded line, or None at end of stream.
        """
        raw = stream.readline()
        if not raw:
            return None

        if raw.endswith(b"\r\n"):
            raw = raw[:-2]
        elif raw.endswith(b"\n"):
            raw = raw[:-1]

        return raw.decode(self.encoding, errors="replace")

    def _parse_request_line(self, line: str) -> tuple:
        """
        Split the request line into (method, path, version).

        Splitting is on single spaces, so "GET  / HTTP/1.1" (two spaces)
        yields four tokens and is rejected.
        """
        tokens = line.split(" ")
        if len(tokens) != 3:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, path, version = tokens
        return method, path, version

    def _read_header_lines(self, stream: BinaryIO) -> list:
        """Collect header lines up to the blank line (or end of stream)."""
        lines = []
        while True:
            line = self._read_line(stream)
            if line is None:
                logger.debug("Stream ended before end of headers")
                break
            if line == "":
                break
            lines.append(line)
        return lines

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        """
        Build the header table.

        A line counts as a header only when splitting on ':' gives exactly
        two parts. "Host: localhost:4221" has two colons and is dropped,
        as is a line with no colon at all.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            parts = line.split(":")
            if len(parts) != 2:
                logger.debug(f"Dropping malformed header line: {line!r}")
                continue

            name, value = parts
            headers[name.lower()] = value.strip()

        return headers

    def _read_body(self, stream: BinaryIO, headers: Dict[str, str]) -> bytes:
        """
        Read exactly Content-Length bytes.

        The body is read as raw bytes, so embedded CR/LF are just data.
        If the peer closes early we keep whatever arrived.
        """
        raw_length = headers.get("content-length")
        if raw_length is None:
            return b""

        try:
            content_length = int(raw_length)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw_length!r}")

        if content_length < 0:
            raise HTTPParseError(f"Negative Content-Length: {content_length}")

        if self.max_body_size is not None and content_length > self.max_body_size:
            raise HTTPParseError(
                f"Content-Length {content_length} exceeds limit of {self.max_body_size} bytes"
            )

        body = stream.read(content_length) if content_length else b""
        if len(body) < content_length:
            logger.warning(
                f"Truncated body: expected {content_length} bytes, got {len(body)}"
            )

        return body


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0)
) -> Optional[HTTPRequest]:
    """
    Convenience function to parse a request held in memory.

    Wraps the bytes in io.BytesIO and runs a RequestParser over them.
    """
    return RequestParser().parse(io.BytesIO(data), client_address)
