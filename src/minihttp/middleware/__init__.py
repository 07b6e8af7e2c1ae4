"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting concerns wrapped around the router:

    LoggingMiddleware       access log with timing
    CompressionMiddleware   gzip content negotiation

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware
from .compression import CompressionMiddleware, accepts_gzip

__all__ = [
    # Base classes
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    # Built-in middleware
    "LoggingMiddleware",
    "CompressionMiddleware",
    "accepts_gzip",
]
