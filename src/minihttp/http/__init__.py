"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

The protocol layer of the server: everything between "bytes arrived on a
socket" and "bytes to send back".

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        MODULE COMPONENTS                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   request.py       Line-based parser → HTTPRequest                  │
    │   router.py        Exact / prefix routing → handler                 │
    │   response.py      HTTPResponse + ResponseBuilder → bytes           │
    │   status_codes.py  200 / 201 / 404                                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    created,
    not_found,
)
from .router import Router, Route, RouteMatch, RouteType
from .status_codes import HTTPStatus


__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "not_found",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "RouteType",

    # Status codes
    "HTTPStatus",
]
