"""
=============================================================================
MINIHTTP - A Small HTTP/1.1 Server on Raw Sockets
=============================================================================

A threaded HTTP server that parses requests by hand from the socket byte
stream and answers a fixed set of routes: root, echo, user-agent
reflection, and file read/write under a base directory. Text responses
are gzip-compressed when the client asks for it.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    minihttp/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m minihttp)
    ├── server.py            # HTTPServer orchestrator
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Networking and concurrency
    │   ├── socket_server.py # Listening socket + accept loop
    │   ├── connection.py    # One client connection
    │   └── thread_pool.py   # Bounded worker pool
    ├── http/                # Protocol
    │   ├── request.py       # Line-based request parser
    │   ├── response.py      # Response model + serialization
    │   ├── router.py        # Exact / prefix routing
    │   └── status_codes.py  # 200 / 201 / 404
    ├── middleware/          # Request/response pipeline
    │   ├── base.py          # Middleware + MiddlewarePipeline
    │   ├── logging.py       # Access log
    │   └── compression.py   # gzip negotiation
    └── handlers/
        ├── basic.py         # root, echo, user-agent, 404
        └── files.py         # GET/POST /files/{name}

=============================================================================
QUICK START
=============================================================================

    from minihttp import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(port=4221, directory="/tmp/data"))
    server.run()

Or from the shell:

    python -m minihttp --directory /tmp/data

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "__version__"]
