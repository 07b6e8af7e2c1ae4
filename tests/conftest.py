"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from minihttp import HTTPServer, ServerConfig


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/abc HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"User-Agent: pytest/1.0\r\n"
        b"Accept-Encoding: deflate, gzip\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body containing CRLF."""
    body = b"line one\r\nline two\r\n"
    return (
        b"POST /files/notes.txt HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Content-Type: application/octet-stream\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def config(free_port: int, tmp_path: Path) -> ServerConfig:
    """Test server configuration rooted at a temporary directory."""
    return ServerConfig(
        host="127.0.0.1",
        port=free_port,
        directory=str(tmp_path),
        min_workers=2,
        max_workers=8,
        timeout=5.0,
        log_level="WARNING",
    )


class ServerThread:
    """Runs an HTTPServer in a background daemon thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start the server and wait until it is listening."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self, timeout: float = 10.0) -> bool:
        """Stop the server and wait for run() to return. True if it did."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        return not (self._thread and self._thread.is_alive())

    def connect(self) -> socket.socket:
        """Open a raw client socket to the server."""
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        return sock

    def request(self, raw: bytes) -> bytes:
        """
        Send raw request bytes and read the whole response.

        The server closes after one response, so reading to EOF is enough.
        """
        with self.connect() as sock:
            sock.sendall(raw)
            return recv_all(sock)


def recv_all(sock: socket.socket) -> bytes:
    """Read from a socket until the peer closes it."""
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def split_response(raw: bytes):
    """
    Split a raw response into (status_line, headers, body).

    Header names are returned as sent, in order.
    """
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = []
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers.append((name, value))
    return lines[0], headers, body


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[ServerThread, None, None]:
    """A running server on a free port, serving files from tmp_path."""
    server_thread = ServerThread(HTTPServer(config))
    server_thread.start()

    yield server_thread

    server_thread.stop()
