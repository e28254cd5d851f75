"""Protocol module for varnish-admin."""

from .codec import FrameCodec, encode_command, format_response, parse_command, parse_status_line
from .codes import Command, Response, StatusCode
from .errors import (
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
    "Command",
    "Response",
    "StatusCode",
    "FrameCodec",
    "encode_command",
    "format_response",
    "parse_command",
    "parse_status_line",
    "AuthFailedError",
    "AuthRequiredError",
    "CommandError",
    "ConnectError",
    "ProtocolError",
    "ReadTimeoutError",
    "SessionError",
    "VarnishAdminError",
    "WriteError",
]
