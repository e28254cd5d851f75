"""
varnish-admin: Admin Socket Client

A blocking client for the cache proxy's administrative control socket,
speaking the length-framed text protocol over raw TCP.
"""

__version__ = "1.0.0"

from .client import VarnishAdmin, build_url_ban
from .config.settings import ConnectionConfig
from .network.session import AdminSession, SessionState
from .protocol.codes import Response, StatusCode
from .protocol.errors import (
    AuthFailedError,
    AuthRequiredError,
    CommandError,
    ConnectError,
    ProtocolError,
    ReadTimeoutError,
    SessionError,
    VarnishAdminError,
    WriteError,
)

__all__ = [
    "VarnishAdmin",
    "AdminSession",
    "ConnectionConfig",
    "Response",
    "SessionState",
    "StatusCode",
    "build_url_ban",
    "AuthFailedError",
    "AuthRequiredError",
    "CommandError",
    "ConnectError",
    "ProtocolError",
    "ReadTimeoutError",
    "SessionError",
    "VarnishAdminError",
    "WriteError",
    "__version__",
]
