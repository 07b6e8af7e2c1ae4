"""
=============================================================================
COMPRESSION MIDDLEWARE (Content Negotiation)
=============================================================================

Gzip-compresses text responses for clients that ask for it.

=============================================================================
NEGOTIATION RULES
=============================================================================

The Accept-Encoding header is treated as a plain comma-separated list:

    Accept-Encoding: deflate,   gzip , br
                     ───┬───  ───┬──  ─┬
                        │        │     │
                  split on "," and trim each token
                        │        │     │
                  {"deflate", "gzip", "br"}  ← "gzip" in set? yes

    - No quality values: "gzip;q=0" is the token "gzip;q=0", not "gzip"
    - No wildcard: "*" does not imply gzip
    - Exact, case-sensitive token match

=============================================================================
WHAT GETS COMPRESSED
=============================================================================

Only responses whose Content-Type is in compressible_types (text/plain
by default, i.e. echo and user-agent). Bare responses (root, 404, 201)
have no Content-Type and are never touched; file downloads are served
as application/octet-stream and pass through unchanged.

Unlike a size-driven compressor, every eligible body is compressed, even
an empty one. The client asked for gzip and gets gzip.

=============================================================================
"""

import gzip
from typing import Optional, Set

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


GZIP = "gzip"


def accepts_gzip(accept_encoding: Optional[str]) -> bool:
    """
    Check an Accept-Encoding header value for the gzip token.

    Examples:
        accepts_gzip("gzip")                 → True
        accepts_gzip("deflate, gzip")        → True
        accepts_gzip("  gzip  ,br")          → True
        accepts_gzip("invalid-encoding")     → False
        accepts_gzip(None)                   → False
    """
    if not accept_encoding:
        return False
    tokens = {token.strip() for token in accept_encoding.split(",")}
    return GZIP in tokens


class CompressionMiddleware(Middleware):
    """
    Response compression middleware.

    1. Call the next handler to get the response
    2. Check the client's Accept-Encoding for the gzip token
    3. Check the response is a compressible text body
    4. Compress, set Content-Encoding (Content-Length follows the body)
    """

    COMPRESSIBLE_TYPES: Set[str] = {"text/plain"}

    def __init__(
        self,
        level: int = 9,
        compressible_types: Optional[Set[str]] = None,
    ):
        """
        Args:
            level: gzip compression level (1 = fastest, 9 = smallest).
                   9 matches gzip.compress()'s own default.
            compressible_types: Content types to compress.
        """
        self.level = level
        self.compressible_types = compressible_types or self.COMPRESSIBLE_TYPES

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)

        if not accepts_gzip(request.accept_encoding):
            return response

        if not self._should_compress(response):
            return response

        response.body = gzip.compress(response.body, compresslevel=self.level)
        response.headers["Content-Encoding"] = GZIP
        response.headers["Content-Length"] = str(len(response.body))
        return response

    def _should_compress(self, response: HTTPResponse) -> bool:
        """
        Decide if the response is eligible.

        - Not already encoded (no double compression)
        - Content type is compressible, ignoring parameters like charset
        """
        if "Content-Encoding" in response.headers:
            return False

        content_type = response.headers.get("Content-Type", "")
        base_type = content_type.split(";")[0].strip().lower()

        return base_type in self.compressible_types
