"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The server speaks a deliberately tiny slice of HTTP. Only three outcomes
exist on the wire:

    ┌───────┬──────────────┬──────────────────────────────────────────────┐
    │ Code  │ Phrase       │ Used by                                      │
    ├───────┼──────────────┼──────────────────────────────────────────────┤
    │ 200   │ OK           │ root, echo, user-agent, file GET             │
    │ 201   │ Created      │ file POST                                    │
    │ 404   │ Not Found    │ unknown path, missing file                   │
    └───────┴──────────────┴──────────────────────────────────────────────┘

Anything that would be a 400 or 500 elsewhere is handled by closing the
connection without a response (see server.py).

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200            # Request served
    CREATED = 201       # File written
    NOT_FOUND = 404     # No route, or no such file

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

        The phrase is the text after the code in the status line:

            HTTP/1.1 201 Created
                     ─── ───────
                      │     └── Reason phrase
                      └──────── Status code
        """
        return _STATUS_PHRASES[self]

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx (success) status code."""
        return 200 <= self < 300


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NOT_FOUND: "Not Found",
}
