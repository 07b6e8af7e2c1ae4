"""
Built-in text handlers: root, echo, user-agent, not-found.

Each one is a plain function (request → response) so it can be passed
straight to the router.
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok, not_found


logger = logging.getLogger(__name__)


def root(request: HTTPRequest) -> HTTPResponse:
    """GET / → 200 with no body and no content headers."""
    return ok()


def echo(request: HTTPRequest) -> HTTPResponse:
    """
    GET /echo/{text} → 200 text/plain with {text} as the body.

    The text is everything after "/echo/", slashes included, exactly as
    it appeared in the request line (no percent-decoding).
    """
    return ok(request.path_params.get("remainder", ""))


def user_agent(request: HTTPRequest) -> HTTPResponse:
    """
    GET /user-agent → 200 text/plain with the User-Agent header value.

    A request without User-Agent gets a 200 with an empty body.
    """
    agent = request.user_agent
    if agent is None:
        logger.warning(f"No User-Agent header on {request.path}, replying with empty body")
        agent = ""
    return ok(agent)


def missing(request: HTTPRequest) -> HTTPResponse:
    """Fallback for unmatched paths: 404 with no body."""
    return not_found()
