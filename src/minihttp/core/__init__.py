"""
Low-level networking and concurrency: the listening socket, the
per-client connection wrapper, and the worker pool.
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",     # Listening socket + accept loop
    "Connection",       # One client socket + buffered reader
    "ConnectionState",  # Connection lifecycle states
    "ThreadPool",       # Bounded worker pool
]
