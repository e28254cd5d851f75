"""
Protocol Error Definitions

Every failure raised by the client derives from VarnishAdminError, so
callers can catch the whole family with a single except clause.
"""

import builtins


class VarnishAdminError(Exception):
    """Base class for all admin socket errors."""


class ConnectError(VarnishAdminError):
    """The admin socket could not be opened."""

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f'Failed to connect to varnishadm on {host}:{port}; "{reason}"')


class ReadTimeoutError(VarnishAdminError, builtins.TimeoutError):
    """No data arrived within the configured timeout on a blocking read."""


class ProtocolError(VarnishAdminError):
    """A response was malformed, carried no status line, or had an unexpected code."""


class AuthRequiredError(VarnishAdminError):
    """The listener issued an auth challenge but no secret is configured."""


class AuthFailedError(VarnishAdminError):
    """The challenge-response exchange did not succeed."""


class WriteError(VarnishAdminError):
    """Fewer bytes were written to the socket than requested."""


class SessionError(VarnishAdminError):
    """The session is not in a state that allows the requested operation."""


class CommandError(VarnishAdminError):
    """
    A command's response code did not match the expected code.

    Attributes:
        command: The command text that was sent
        code: The status code actually received
        body: The raw response body
    """

    def __init__(self, command: str, code: int, body: str):
        self.command = command
        self.code = code
        self.body = body
        super().__init__(f"{command} command responded {code}:\n > {self.quoted_body}")

    @property
    def quoted_body(self) -> str:
        """The body with every line after the first prefixed by ' > '."""
        return "\n > ".join(self.body.strip().split("\n"))
