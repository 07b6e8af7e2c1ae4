"""
=============================================================================
URL ROUTER
=============================================================================

Maps a request path to exactly one handler.

Two kinds of rule exist:
- EXACT:  the path must equal the pattern ("/")
- PREFIX: the path must start with the pattern ("/echo/"); the rest of
          the path is handed to the handler as path_params["remainder"]

=============================================================================
ROUTING FLOW
=============================================================================

    Incoming path: /echo/abc/def
         │
         ▼
    ┌─────────────────────────────────────────────────────────────┐
    │  Routes, in registration order (first match wins)           │
    │                                                             │
    │   EXACT   /            → root                               │
    │   PREFIX  /echo/       → echo          ← MATCH              │
    │   PREFIX  /user-agent  → user_agent                         │
    │   PREFIX  /files/      → files                              │
    └─────────────────────────────────────────────────────────────┘
         │
         ▼
    request.path_params = {"remainder": "abc/def"}
    echo(request)

No match → the router's fallback handler (404 by default).

Routes never filter on method. Handlers that care about the method
(the file handler) branch on request.method themselves.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .request import HTTPRequest
from .response import HTTPResponse, not_found


Handler = Callable[[HTTPRequest], HTTPResponse]


class RouteType(Enum):
    """How a route pattern is compared against the request path."""
    EXACT = "exact"     # path == pattern
    PREFIX = "prefix"   # path.startswith(pattern)


@dataclass
class Route:
    """
    A registered route.

        Route(path="/files/", kind=RouteType.PREFIX, handler=files.handle)
    """

    path: str
    kind: RouteType
    handler: Handler
    name: Optional[str] = None

    def matches(self, path: str) -> Optional[str]:
        """
        Compare this route against a request path.

        Returns:
            The remainder after the pattern ("" for exact routes), or
            None if the route does not match.
        """
        if self.kind is RouteType.EXACT:
            return "" if path == self.path else None
        if path.startswith(self.path):
            return path[len(self.path):]
        return None


@dataclass
class RouteMatch:
    """
    Result of a successful route match.

    Example:
        Pattern: /files/
        Path:    /files/a/b.txt
        Result:  RouteMatch(route=<Route>, params={"remainder": "a/b.txt"})
    """
    route: Route
    params: Dict[str, str]


class Router:
    """
    Ordered, first-match-wins router.

        router = Router()

        @router.exact("/")
        def root(request):
            return ok()

        @router.prefix("/echo/")
        def echo(request):
            return ok(request.path_params["remainder"])

        response = router.handle(request)
    """

    def __init__(self, fallback: Handler = None):
        """
        Args:
            fallback: Handler used when nothing matches.
                      Defaults to a bare 404.
        """
        self._routes: List[Route] = []
        self._fallback: Handler = fallback or (lambda request: not_found())

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        kind: RouteType = RouteType.EXACT,
        name: Optional[str] = None,
    ) -> Route:
        """Register a route. Order of registration is order of matching."""
        route = Route(path=path, kind=kind, handler=handler, name=name)
        self._routes.append(route)
        return route

    def exact(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator: register an exact-match route."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, RouteType.EXACT, name)
            return handler
        return decorator

    def prefix(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator: register a prefix route."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, RouteType.PREFIX, name)
            return handler
        return decorator

    def set_fallback(self, handler: Handler) -> None:
        """Replace the handler used when no route matches."""
        self._fallback = handler

    # =========================================================================
    # MATCHING
    # =========================================================================

    def match(self, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching the path.

        The path is compared exactly as received: no normalisation, no
        percent-decoding, no query-string stripping.
        """
        for route in self._routes:
            remainder = route.matches(path)
            if remainder is not None:
                return RouteMatch(route=route, params={"remainder": remainder})
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request to its handler.

        Injects path_params into the request before calling the handler.
        """
        match = self.match(request.path)
        if match is None:
            return self._fallback(request)

        request.path_params = match.params
        return match.route.handler(request)

    def routes(self) -> List[Route]:
        """All registered routes, in matching order."""
        return list(self._routes)
