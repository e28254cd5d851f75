"""
Protocol Status Codes and Response Definitions

This module defines the data structures shared by the framing codec,
the session manager and the stub listener.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum


class StatusCode(IntEnum):
    """Status codes sent on the admin socket's response lines."""
    SYNTAX = 100
    UNKNOWN = 101
    UNIMPL = 102
    TOO_FEW = 104
    TOO_MANY = 105
    PARAM = 106
    AUTH = 107
    OK = 200
    TRUNCATED = 201
    CANT = 300
    COMMS = 400
    CLOSE = 500


class Command(str, Enum):
    """Command verbs understood by the admin socket."""
    AUTH = "auth"
    BAN = "ban"
    BAN_LIST = "ban.list"
    PING = "ping"
    STATUS = "status"
    START = "start"
    STOP = "stop"
    QUIT = "quit"

    def with_args(self, *args: str) -> str:
        """Render the command line text for this verb and its arguments."""
        return " ".join((self.value,) + args)


@dataclass(frozen=True)
class Response:
    """
    A single framed response read from the admin socket.

    Attributes:
        code: Three digit status code from the status line
        length: Body length announced by the status line, in bytes
        body: Decoded body text (shorter than announced if the stream ended)
    """
    code: int
    length: int
    body: str = ""

    @property
    def ok(self) -> bool:
        """Check if the response carries the success code."""
        return self.code == StatusCode.OK
