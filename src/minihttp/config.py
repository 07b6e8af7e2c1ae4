"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything the server needs to know at startup, in one immutable value.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m minihttp --directory /tmp/data                  │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_DIRECTORY=/tmp/data python -m minihttp               │
    │                                                                      │
    │   3. Defaults in this dataclass                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The config is frozen: it is built once, validated, and then passed
explicitly to the server and the file handler. Nothing mutates it while
connections are being served. Use dataclasses.replace() to derive a
modified copy.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout, max_body_size

    FILES
    - directory

    THREADING SETTINGS
    - min_workers, max_workers, queue_size, shutdown_timeout

    LOGGING
    - log_level, log_format, access_log

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only
    - "0.0.0.0" - All network interfaces
    """

    port: int = 4221
    """
    The port number to listen on. 0 lets the OS pick a free port.
    """

    backlog: int = 128
    """
    Maximum number of queued connections at the TCP level.
    """

    buffer_size: int = 8192
    """
    Size of each connection's read buffer in bytes.
    """

    timeout: Optional[float] = None
    """
    Per-connection socket timeout in seconds.
    None = blocking reads with no limit. A client that connects and sends
    nothing then holds a worker until it disconnects.
    """

    max_body_size: int = 64 * 1024 * 1024  # 64 MB
    """
    Largest Content-Length accepted on a POST. A bigger declared body is a
    parse error: the connection is closed without reading it.
    """

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    directory: str = "/"
    """
    Base directory for /files/ reads and writes.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """
    Worker threads started with the server.
    """

    max_workers: int = 32
    """
    Upper bound on worker threads. Connections beyond this wait in the
    queue.
    """

    queue_size: int = 128
    """
    Accepted connections waiting for a worker. When full, the accept loop
    blocks (backpressure onto the TCP backlog).
    """

    shutdown_timeout: float = 30.0
    """
    Seconds shutdown waits for queued connections to be picked up before
    stopping the workers anyway.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """

    log_format: str = "text"
    """
    Access log format: 'text' or 'json'.
    """

    access_log: bool = True
    """
    Emit one access line per request on the "minihttp.access" logger.
    """

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST         Server host (default: 127.0.0.1)
        HTTP_PORT         Server port (default: 4221)
        HTTP_DIRECTORY    Base directory for /files/ (default: /)
        HTTP_WORKERS      Max worker threads (default: 32)
        HTTP_TIMEOUT      Socket timeout in seconds (default: none)
        HTTP_LOG_LEVEL    Logging level (default: INFO)
        HTTP_LOG_FORMAT   Access log format (default: text)
        HTTP_MAX_BODY_SIZE  Largest accepted POST body in bytes (default: 64 MB)

        =====================================================================
        """
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("HTTP_HOST", "127.0.0.1"),
            port=int(env.get("HTTP_PORT", "4221")),
            directory=env.get("HTTP_DIRECTORY", "/"),
            max_workers=int(env.get("HTTP_WORKERS", "32")),
            timeout=_optional_float(env.get("HTTP_TIMEOUT")),
            log_level=env.get("HTTP_LOG_LEVEL", "INFO").upper(),
            log_format=env.get("HTTP_LOG_FORMAT", "text").lower(),
            max_body_size=int(env.get("HTTP_MAX_BODY_SIZE", str(64 * 1024 * 1024))),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Fail fast at startup rather than on the first request.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")

        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be > 0")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
