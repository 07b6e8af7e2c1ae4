"""
=============================================================================
REQUEST HANDLERS
=============================================================================

    basic.root          GET /               → 200, empty
    basic.echo          GET /echo/{text}    → 200, {text}
    basic.user_agent    GET /user-agent     → 200, User-Agent value
    FileHandler         GET/POST /files/... → 200/404 or 201
    basic.missing       anything else       → 404, empty

=============================================================================
"""

from .basic import root, echo, user_agent, missing
from .files import FileHandler

__all__ = [
    "root",
    "echo",
    "user_agent",
    "missing",
    "FileHandler",
]
