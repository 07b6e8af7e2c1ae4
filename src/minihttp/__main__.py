"""
=============================================================================
MINIHTTP CLI ENTRY POINT
=============================================================================

    # Defaults (127.0.0.1:4221, files under /)
    python -m minihttp

    # Serve and store files under a directory
    python -m minihttp --directory /tmp/data

    # Listen on all interfaces, more workers
    python -m minihttp --host 0.0.0.0 --workers 8 --max-workers 64

=============================================================================
CONFIGURATION PRECEDENCE
=============================================================================

    1. Command-line flags           (only the ones actually given)
    2. Environment (HTTP_*)         ServerConfig.from_env()
    3. ServerConfig defaults

=============================================================================
"""

import argparse
import sys
from dataclasses import replace
from typing import Optional, List

from . import __version__
from .server import HTTPServer
from .config import ServerConfig, LOG_LEVELS, LOG_FORMATS


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Every option defaults to None so we can tell "not given" apart from
    "given with the default value" when layering over the environment.
    """
    parser = argparse.ArgumentParser(
        prog="minihttp",
        description="Small threaded HTTP/1.1 server with echo, user-agent and file routes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m minihttp                          # Run with defaults
  python -m minihttp --directory /tmp/data    # Files under /tmp/data
  python -m minihttp --port 8080              # Custom port
  python -m minihttp --log-format json        # JSON access log
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 4221)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-connection socket timeout in seconds (default: none)"
    )

    parser.add_argument(
        "--max-body-size",
        type=int,
        default=None,
        help="Largest accepted POST body in bytes (default: 67108864)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--directory", "-d",
        default=None,
        help="Base directory for /files/ (default: /)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Worker threads started with the server (default: 4)"
    )

    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Upper bound on worker threads (default: 32)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--no-access-log",
        dest="access_log",
        action="store_false",
        default=None,
        help="Disable the per-request access log"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttp {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ServerConfig] = None) -> ServerConfig:
    """Overlay the flags that were given onto a base config (env by default)."""
    config = base if base is not None else ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "timeout": args.timeout,
        "max_body_size": args.max_body_size,
        "directory": args.directory,
        "min_workers": args.workers,
        "max_workers": args.max_workers,
        "log_level": args.log_level,
        "log_format": args.log_format,
        "access_log": args.access_log,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}

    # --workers alone should not trip max_workers < min_workers
    if "min_workers" in overrides and "max_workers" not in overrides:
        overrides["max_workers"] = max(config.max_workers, overrides["min_workers"])

    return replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code: 0 after a clean shutdown, 2 for a bad
        configuration, 1 if the server could not start.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        server = HTTPServer(config)
    except ValueError as e:
        parser.error(str(e))

    try:
        server.run()
    except OSError as e:
        print(f"minihttp: cannot start server: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
