"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One accepted socket, owned end-to-end by one worker thread.

=============================================================================
LIFECYCLE
=============================================================================

Every connection carries exactly one request. There is no keep-alive:

    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSING ──► CLOSED
     │         │             │             │                    ▲
     └─────────┴─────────────┴─────────────┴── (any failure) ───┘

The connection is a context manager, so the close step runs on every
exit path: normal completion, parse error, handler error, or I/O failure.

=============================================================================
BUFFERED READING
=============================================================================

TCP delivers bytes in arbitrary chunks, but the parser wants whole lines.
Instead of hand-rolling a buffer, we use the socket's file interface:

    socket.makefile("rb")  →  io.BufferedReader
                                 ├── readline()  one CRLF-terminated line
                                 └── read(n)     exactly n bytes (or EOF)

That reader is the "line reader" the request parser consumes.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states (for logging and debugging)."""
    NEW = "new"                # Just accepted
    READING = "reading"        # Parsing the request
    PROCESSING = "processing"  # Handler is executing
    WRITING = "writing"        # Sending the response
    CLOSING = "closing"        # Shutdown sequence
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique identifier (for log correlation).
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = None

    _reader: Optional[BinaryIO] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        """Configure blocking mode and wrap the socket in a buffered reader."""
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

        self._reader = self.socket.makefile("rb", buffering=self.buffer_size)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def reader(self) -> BinaryIO:
        """
        Buffered binary stream over the socket.

        Hand this to RequestParser.parse().
        """
        self.state = ConnectionState.READING
        return self._reader

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes to the client.

        sendall() loops until every byte is handed to the kernel; plain
        send() may stop after a partial write.

        Returns:
            True if the send succeeded, False if the peer went away.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN, the client sees end of response
        2. Drain anything the client still sends, so the kernel does not
           answer unread data with a RST that could discard our response
        3. close() the reader and the socket
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # Includes socket.timeout

        try:
            self._reader.close()
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Ensure the connection is closed; never suppress the exception."""
        self.close()
        return False
