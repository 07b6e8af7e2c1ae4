"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

Middleware wraps the router to handle cross-cutting concerns without
touching the handlers:

    ┌─────────────────────────────────────────────────────────┐
    │  LoggingMiddleware        (outermost: sees final size)  │
    │  ┌───────────────────────────────────────────────────┐  │
    │  │  CompressionMiddleware                            │  │
    │  │  ┌─────────────────────────────────────────────┐  │  │
    │  │  │          router.handle                      │  │  │
    │  │  └─────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────┘

Request flows inward, response flows outward. A middleware may also
raise; whatever it raises reaches the connection processor unchanged.

=============================================================================
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# Whatever sits one layer further in: another middleware or router.handle
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    One layer around the router.

    Subclasses implement __call__ and decide whether, and when, to call
    next(request):

        class Timing(Middleware):
            def __call__(self, request, next):
                started = time.time()
                response = next(request)
                logger.debug(f"{request.path} took {time.time() - started:.3f}s")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Handle one request, usually by delegating to next."""

    @property
    def name(self) -> str:
        return type(self).__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware, folded around a final handler.

        handler = (MiddlewarePipeline()
            .add(LoggingMiddleware())
            .add(CompressionMiddleware())
            .wrap(router.handle))

    The first middleware added is the outermost layer.
    """

    def __init__(self):
        self._layers: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append a layer (inside the ones already added). Returns self."""
        self._layers.append(middleware)
        logger.debug(f"Middleware layer {len(self._layers)}: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the call chain: layers[0](layers[1](...(handler))).

        The chain is built once; later add() calls do not affect handlers
        that were already wrapped.
        """
        chain = handler
        for layer in reversed(self._layers):
            chain = partial(layer, next=chain)
        return chain

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self):
        return iter(self._layers)
