#!/usr/bin/env python3
"""
varnish-admin Command Line Entry Point

Usage:
    varnish-admin ping                               # One-shot command
    varnish-admin --port 6082 -S /etc/varnish/secret # Interactive prompt
    varnish-admin purge-url http://example.com/news  # Ban a URL prefix
    varnish-admin --serve-stub --port 6082           # Run the stub listener

Environment Variables:
    VARNISH_ADMIN_HOST         - Admin listener address
    VARNISH_ADMIN_PORT         - Admin listener port
    VARNISH_ADMIN_SECRET       - Shared secret
    VARNISH_ADMIN_SECRET_FILE  - Path of the secret file
    VARNISH_ADMIN_TIMEOUT      - Connect/read timeout in seconds
    VARNISH_ADMIN_DEBUG        - Enable debug logging (true/false)
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .client import VarnishAdmin
from .config.settings import settings
from .network.stub_server import StubAdminServer
from .protocol.auth import load_secret
from .protocol.errors import VarnishAdminError

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

logger = logging.getLogger(__name__)

HELP_TEXT = """
Shortcuts:
----------
  purge <expression>        Ban objects matching an expression
  purge-url <url>           Ban everything under a URL
  bans                      Show the ban list
  status                    Report whether the child is running
  start                     Start the child (no-op if running)
  stop                      Stop the child (no-op if stopped)

Client Commands:
----------------
  help                      Show this help message
  exit                      Quit the session and exit

Anything else is sent to the admin socket as-is and the raw
response is printed with its status code.
"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="varnish-admin: client for the cache proxy admin socket",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Admin listener address",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Admin listener port",
    )

    parser.add_argument(
        "--secret",
        type=str,
        default=None,
        help="Shared secret for the auth challenge",
    )

    parser.add_argument(
        "-S", "--secret-file",
        type=str,
        default=settings.SECRET_FILE or None,
        help="File holding the shared secret",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.TIMEOUT,
        help="Connect and read timeout in seconds",
    )

    parser.add_argument(
        "--serve-stub",
        action="store_true",
        help="Run the stub admin listener instead of a client",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    parser.add_argument(
        "command",
        nargs="*",
        help="Command to run once; omit for an interactive prompt",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def run_command(admin: VarnishAdmin, words: List[str]) -> str:
    """
    Run one command line, expanding the client shortcuts.

    Returns:
        Text to print for the command
    """
    verb, args = words[0], words[1:]

    if verb == "purge":
        return admin.purge(" ".join(args))
    if verb == "purge-url":
        if len(args) != 1:
            raise ValueError("purge-url takes exactly one URL")
        return admin.purge_url(args[0])
    if verb == "bans":
        return "\n".join(admin.purge_list())
    if verb == "status":
        return "running" if admin.status() else "not running"
    if verb == "start":
        admin.start()
        return "started"
    if verb == "stop":
        admin.stop()
        return "stopped"

    response = admin.execute(" ".join(words))
    return f"{response.code}\n{response.body}"


def interactive(admin: VarnishAdmin) -> None:
    """Read commands from the terminal until exit or end of input."""
    print(admin.banner)
    print("Type 'help' for client shortcuts.\n")

    while True:
        try:
            line = input(">>> ").strip()
        except EOFError:
            print()
            break

        if not line:
            continue

        lower_line = line.lower()
        if lower_line == "help":
            print(HELP_TEXT)
            continue
        if lower_line in ("exit", "quit"):
            break

        try:
            print(run_command(admin, line.split()))
        except (VarnishAdminError, ValueError) as e:
            print(f"ERROR: {e}")
            if not admin.is_open:
                break


def serve_stub(args: argparse.Namespace) -> None:
    """Run the stub admin listener until interrupted."""
    secret = args.secret
    if secret is None and args.secret_file:
        secret = load_secret(args.secret_file)

    server = StubAdminServer(host=args.host, port=args.port, secret=secret or "")
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the console script."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    if args.serve_stub:
        serve_stub(args)
        return 0

    try:
        admin = VarnishAdmin(
            host=args.host,
            port=args.port,
            secret=args.secret,
            timeout=args.timeout,
            secret_file=args.secret_file,
        )
    except (VarnishAdminError, OSError) as e:
        logger.error(f"{e}")
        return 1

    with admin:
        if not args.command:
            try:
                interactive(admin)
            except KeyboardInterrupt:
                print("\nInterrupted.")
            return 0

        try:
            print(run_command(admin, args.command))
        except (VarnishAdminError, ValueError) as e:
            logger.error(f"{e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
