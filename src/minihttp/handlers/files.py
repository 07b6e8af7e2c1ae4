"""
=============================================================================
FILE HANDLER
=============================================================================

Reads and writes files under a base directory.

    GET  /files/{name}   → 200 + file bytes (application/octet-stream)
                           404 if {directory}/{name} is not a regular file
    POST /files/{name}   → write request body to {directory}/{name}
                           (parents created, file created or overwritten)
                           201, no body

=============================================================================
PATH HANDLING
=============================================================================

    directory = "/tmp/data"
    request   = POST /files/notes/today.txt

        remainder   "notes/today.txt"
        full path   /tmp/data/notes/today.txt
        mkdir -p    /tmp/data/notes

The name is used as-is. A leading "/" is dropped so the path stays
under the directory, but ".." is NOT filtered: this handler offers no
containment guarantee and must not be exposed to untrusted clients.

=============================================================================
FAILURES
=============================================================================

Filesystem errors (permission denied, disk full, name is a directory...)
are not turned into responses. The OSError propagates to the connection
processor, which logs it and drops the connection.

The filesystem is the only state shared between connections. There is no
locking: concurrent POSTs to the same name are last-writer-wins.

=============================================================================
"""

import logging
from pathlib import Path

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, created, not_found


logger = logging.getLogger(__name__)


class FileHandler:
    """
    GET/POST file handler rooted at a base directory.

    Usage:
        files = FileHandler("/tmp/data")
        router.add_route("/files/", files.handle, RouteType.PREFIX)
    """

    def __init__(self, directory: str = "/"):
        """
        Args:
            directory: Base directory for all file operations. It does not
                       need to exist yet; POST creates it on demand.
        """
        self.directory = Path(directory)

    def resolve(self, file_name: str) -> Path:
        """Map a file name from the URL onto the filesystem."""
        return self.directory / file_name.lstrip("/")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch on method: POST writes, everything else reads.

        The file name comes from the router (path_params["remainder"]).
        """
        file_name = request.path_params.get("remainder", "")
        path = self.resolve(file_name)

        if request.method == "POST":
            return self._write(path, request.body)
        return self._read(path)

    def _read(self, path: Path) -> HTTPResponse:
        """
        200 with the file bytes, or 404.

        Anything that is not a regular file counts as missing, so a name
        that resolves to a directory (including the empty name, i.e. the
        base directory itself) gets a 404 rather than a dropped connection.
        Read errors on a regular file still propagate.
        """
        if not path.is_file():
            logger.debug(f"File not found: {path}")
            return not_found()

        content = path.read_bytes()
        return ResponseBuilder().octets(content).build()

    def _write(self, path: Path, body: bytes) -> HTTPResponse:
        if not path.parent.exists():
            logger.debug(f"Creating directory: {path.parent}")
        path.parent.mkdir(parents=True, exist_ok=True)

        path.write_bytes(body)
        logger.debug(f"Wrote {len(body)} bytes to {path}")
        return created()
