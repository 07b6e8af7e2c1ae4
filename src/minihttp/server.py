"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

The orchestrator that ties the components together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────┬───────┘        │
    │           ▼                   ▼                   ▼                 │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │  Connection  │    │RequestParser │    │   Handlers   │        │
    │    └──────────────┘    └──────────────┘    └──────────────┘        │
    │                                                                      │
    │           Middleware: Logging → Compression → Router                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts, wraps the socket in a Connection
    2. Connection queued in the ThreadPool (blocks if the queue is full)
    3. Worker: RequestParser reads one request from the socket
    4. LoggingMiddleware → CompressionMiddleware → Router → handler
    5. Response serialized and sent in one sendall()
    6. Connection closed (one request per connection)

A request that cannot be parsed, or a handler that fails, gets NO
response: the failure is logged and the connection is closed.

=============================================================================
ROUTES
=============================================================================

Registered in this order; the first match wins.

    exact   /             → 200, no body
    prefix  /echo/        → 200 text/plain, body = rest of path
    prefix  /user-agent   → 200 text/plain, body = User-Agent
    prefix  /files/       → GET reads, POST writes under config.directory
    (else)                → 404, no body

=============================================================================
"""

import logging
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .http import HTTPRequest, HTTPResponse, RequestParser, HTTPParseError, Router, RouteType
from .handlers import root, echo, user_agent, missing, FileHandler
from .middleware import MiddlewarePipeline, LoggingMiddleware, CompressionMiddleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 server with fixed routes.

    Usage:
        config = ServerConfig(port=4221, directory="/tmp/data")
        server = HTTPServer(config)
        server.run()  # Blocks until SIGINT/SIGTERM or shutdown()

    From another thread (tests):
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5.0)
        ...
        server.shutdown()
    """

    # Seconds the accept thread waits on a full queue before re-checking
    # for shutdown
    QUEUE_POLL = 1.0

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults are used if not provided.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config)

        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )

        self._parser = RequestParser(max_body_size=self.config.max_body_size)

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._files = FileHandler(self.config.directory)
        self._router = self._build_router()

        self._middleware = MiddlewarePipeline()
        if self.config.access_log:
            self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self._middleware.add(CompressionMiddleware())

        self._handler: Callable[[HTTPRequest], HTTPResponse] = self._middleware.wrap(
            self._router.handle
        )

    def _build_router(self) -> Router:
        router = Router(fallback=missing)
        router.add_route("/", root, RouteType.EXACT, name="root")
        router.add_route("/echo/", echo, RouteType.PREFIX, name="echo")
        router.add_route("/user-agent", user_agent, RouteType.PREFIX, name="user-agent")
        router.add_route("/files/", self._files.handle, RouteType.PREFIX, name="files")
        return router

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); resolves port 0 once the server is listening."""
        return self._socket_server.address

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Returns after shutdown() is called or a SIGINT/SIGTERM arrives.

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        self._setup_logging()

        self._thread_pool.start()

        logger.info(f"Serving files from {self.config.directory}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("minihttp").setLevel(level)

    def shutdown(self):
        """Stop accepting connections. run() returns once workers drain."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is listening. Returns False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def _shutdown(self):
        """
        Graceful shutdown: the listener is already closed; let queued and
        in-flight connections finish, then stop the workers.

        Workers stuck on silent clients (no read timeout) cannot be
        interrupted. After config.shutdown_timeout they are abandoned; they
        are daemon threads and die with the process.
        """
        logger.info("Shutting down server...")
        logger.debug(f"Thread pool at shutdown: {self._thread_pool.stats}")
        self._thread_pool.shutdown(wait=True, timeout=self.config.shutdown_timeout)
        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Queue a connection for a worker. Called on the accept thread.

        Blocks while the queue is full, which stops the accept loop and
        leaves new clients in the kernel backlog. The wait is sliced so a
        shutdown() arriving meanwhile is noticed within QUEUE_POLL seconds;
        the connection is then closed unserved.
        """
        try:
            while not self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
                block=True,
                queue_timeout=self.QUEUE_POLL,
            ):
                if not self._socket_server.is_running:
                    logger.warning(
                        f"[{conn.id}] Shutting down, dropping queued connection "
                        f"from {conn.client_ip}:{conn.client_port}"
                    )
                    conn.close()
                    return
                logger.debug(f"[{conn.id}] Worker queue full, still waiting")
        except RuntimeError as e:
            logger.warning(f"[{conn.id}] Dropping connection: {e}")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Serve exactly one request on a connection (runs in a worker thread).

        Every exit path closes the connection. Failures never produce an
        error response; the client sees the connection close.
        """
        with conn:
            try:
                request = self._parser.parse(conn.reader, conn.address)
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                return
            except OSError as e:
                logger.warning(f"[{conn.id}] Read failed from {conn.client_ip}: {e}")
                return

            if request is None:
                logger.debug(f"[{conn.id}] Client closed without sending a request")
                return

            conn.state = ConnectionState.PROCESSING

            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Error handling {request.method} {request.path}: {e}")
                return

            conn.send_response(response.to_bytes())
