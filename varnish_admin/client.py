"""
Varnish Admin Client

Typed convenience operations on top of AdminSession. Each one maps onto a
single admin socket command:

    purge(expr)      -> ban <expr>
    purge_url(url)   -> ban req.http.host == <host> && req.url ~ <path>/.*
    purge_list()     -> ban.list
    status()         -> status
    start() / stop() -> start / stop (skipped if already in that state)
"""

import logging
import re
from typing import List
from urllib.parse import urlsplit

from .config.settings import ConnectionConfig, settings
from .network.session import AdminSession
from .protocol.auth import load_secret
from .protocol.codes import Command
from .protocol.errors import VarnishAdminError

logger = logging.getLogger(__name__)

CHILD_STATE_RE = re.compile(r"Child in state (\w+)")


def build_url_ban(url: str) -> str:
    """
    Build the ban expression matching everything under a URL.

    The host is kept as written (case and IPv6 brackets included) so it
    compares equal to the Host header clients send.

    Examples:
        >>> build_url_ban("http://example.com/foo")
        'req.http.host == example.com && req.url ~ /foo/.*'
        >>> build_url_ban("http://[::1]:8080/foo")
        'req.http.host == [::1] && req.url ~ /foo/.*'
    """
    parts = urlsplit(url)
    host = parts.netloc.rpartition("@")[2]
    if host.startswith("["):
        host = host[:host.find("]") + 1] or host
    else:
        host = host.partition(":")[0]
    return f"req.http.host == {host} && req.url ~ {parts.path}/.*"


class VarnishAdmin(AdminSession):
    """
    Client for the cache proxy's admin socket.

    The connection is opened by the constructor, so a failed connect or
    handshake leaves no usable client behind. Use it as a context manager
    (or call quit()) to close the session gracefully.

    Usage:
        with VarnishAdmin(host="127.0.0.1", port=6082, secret_file="/etc/varnish/secret") as admin:
            admin.purge_url("http://example.com/news")
            if not admin.status():
                admin.start()
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            secret: str = None,
            timeout: float = None,
            secret_file: str = None,
            config: ConnectionConfig = None,
            connect: bool = True,
    ):
        """
        Initialize the client and connect.

        Args:
            host: Admin listener address (default from settings)
            port: Admin listener port (default from settings)
            secret: Shared secret; takes precedence over secret_file
            timeout: Seconds for connect and each read (default from settings)
            secret_file: Path of a secret file to read the secret from
            config: Complete ConnectionConfig, used instead of the arguments above
            connect: Open the connection right away
        """
        if config is None:
            if secret is None:
                secret_file = secret_file or settings.SECRET_FILE
                if secret_file:
                    secret = load_secret(secret_file)
            config = ConnectionConfig.from_settings(
                host=host, port=port, secret=secret, timeout=timeout,
            )
        super().__init__(config)

        if connect:
            self.connect()

    def purge(self, expression: str) -> str:
        """
        Ban cached objects matching an expression.

        Args:
            expression: "<field> <operator> <arg> [&& <field> <oper> <arg>]..."
                        passed to the listener unchanged

        Returns:
            The response body
        """
        return self.command(Command.BAN.with_args(expression))

    def purge_url(self, url: str) -> str:
        """Ban every object on the URL's host whose path starts with the URL's path."""
        return self.purge(build_url_ban(url))

    def purge_list(self) -> List[str]:
        """Return the raw ban list, one entry per line."""
        return self.command(Command.BAN_LIST.value).strip().split("\n")

    def status(self) -> bool:
        """
        Check whether the cache child process is running.

        Returns:
            True only if the listener reports "Child in state running".
            Any failure, or any other state, gives False.
        """
        try:
            body = self.command(Command.STATUS.value)
        except (VarnishAdminError, OSError) as exc:
            logger.warning(f"status on {self.config.address} failed: {exc}")
            return False

        match = CHILD_STATE_RE.search(body)
        if match is None:
            return False
        return match.group(1) == "running"

    def start(self) -> bool:
        """Start the child process unless it is already running."""
        if self.status():
            logger.info(f"varnish host already started on {self.config.address}")
            return True
        self.command(Command.START.value)
        return True

    def stop(self) -> bool:
        """Stop the child process unless it is already stopped."""
        if not self.status():
            logger.info(f"varnish host already stopped on {self.config.address}")
            return True
        self.command(Command.STOP.value)
        return True

    def ping(self) -> str:
        """Send ping and return the PONG line."""
        return self.command(Command.PING.value)
