"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

Access logging with timing.

    TEXT FORMAT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [19/Oct/2026:10:55:36 +0000] "GET /echo/abc" 200 3 0.41ms
    │ IP              Timestamp              Method/Path  Status Size Duration
    └─────────────────────────────────────────────────────────────────────┘

    JSON FORMAT (for log aggregators):
    {"request_id": "a1b2c3d4", "method": "GET", "path": "/echo/abc", ...}

Access lines go to the "minihttp.access" logger so they can be routed or
silenced independently of the server's own diagnostics.

The request ID is only used in log lines. It is not echoed back as a
response header, since the server's wire format has a fixed header set.

=============================================================================
"""

import time
import json
import uuid
import logging
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("minihttp.access")


@dataclass
class RequestLog:
    """Structured log entry for one request."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Format as an Apache-style access line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Access log: one line per request that produced a response.

    Added FIRST to the pipeline so the recorded size is what actually goes
    on the wire (after compression).

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        """
        Args:
            log_format: "text" (Apache style) or "json".
            log_level: Level used for access lines.
        """
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        started = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f'{request.client_address[0] or "-"} "{request.method} {request.path}" '
                f"failed after {elapsed_ms:.2f}ms: {type(e).__name__}: {e}"
            )
            raise

        entry = self._entry(request, response, (time.perf_counter() - started) * 1000)
        line = json.dumps(entry.to_dict()) if self.log_format == "json" else entry.to_text()
        logger.log(self.log_level, line)

        return response

    @staticmethod
    def _entry(request: HTTPRequest, response: HTTPResponse, elapsed_ms: float) -> RequestLog:
        return RequestLog(
            request_id=uuid.uuid4().hex[:8],
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=elapsed_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )
