"""
Frame Codec Module

This module translates between the raw byte stream of the admin socket and
Response objects.

Wire format:
    Request:  <command text>\n
    Response: <code> <length>\n<body of exactly length bytes>\n

The status line is padded by the listener ("200 19      \n") and every body
is followed by a newline that is not counted in the length. Both are absorbed
by the status line scan: lines that do not start with a code and a length are
skipped.
"""

import logging
import re
import shlex
import socket
from typing import List, Optional, Tuple

from ..config.settings import settings
from .codes import Response
from .errors import ProtocolError, ReadTimeoutError, WriteError

logger = logging.getLogger(__name__)

STATUS_LINE_RE = re.compile(settings.STATUS_LINE_PATTERN)


def parse_status_line(line: str) -> Optional[Tuple[int, int]]:
    """
    Extract the status code and body length from a response line.

    Args:
        line: A single line read from the socket

    Returns:
        (code, length) if the line is a status line, None otherwise

    Examples:
        >>> parse_status_line("200 19      \\n")
        (200, 19)
        >>> parse_status_line("Child in state running") is None
        True
    """
    match = STATUS_LINE_RE.match(line)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def encode_command(text: str) -> bytes:
    """Encode command text with its newline terminator."""
    return f"{text}\n".encode("utf-8")


def format_response(code: int, body: str = "") -> bytes:
    """
    Frame a response the way the admin listener sends it.

    Examples:
        >>> format_response(200, "PONG")
        b'200 4       \\nPONG\\n'
    """
    payload = body.encode("utf-8")
    return f"{code:<3d} {len(payload):<8d}\n".encode("ascii") + payload + b"\n"


def parse_command(line: str) -> Tuple[str, List[str]]:
    """
    Split a request line into its verb and arguments.

    Double-quoted arguments are kept together. An unbalanced quote raises
    ValueError; an empty line gives an empty verb.
    """
    parts = shlex.split(line.strip())
    if not parts:
        return "", []
    return parts[0], parts[1:]


class FrameCodec:
    """
    Reads framed responses from and writes commands to a connected socket.

    The codec keeps its own receive buffer on top of sock.recv() so that a
    timed out read leaves the socket usable for the next command. A response
    that timed out is still owed by the listener; it is read and discarded
    before the next response is returned, so replies never shift by one.

    Attributes:
        peer: "host:port" of the listener, used in error messages
        chunk_size: Maximum bytes requested from the socket per recv()
    """

    def __init__(self, sock: socket.socket, peer: str = "", chunk_size: int = None):
        self._sock = sock
        self.peer = peer
        self.chunk_size = chunk_size if chunk_size is not None else settings.READ_CHUNK_SIZE
        self._buffer = bytearray()
        self._eof = False
        self._stale = 0
        self._partial: Optional[Tuple[int, int]] = None

    def read_response(self) -> Response:
        """
        Read one framed response.

        Returns:
            Response with the code, announced length and decoded body.
            The body is shorter than announced only when the stream ended.

        Raises:
            ReadTimeoutError: the socket stalled past its timeout
            ProtocolError: the stream ended before any status line arrived
        """
        try:
            self._discard_stale()
            code, length, body = self._read_frame()
        except ReadTimeoutError:
            self._stale += 1
            raise
        if len(body) < length:
            logger.debug(f"Short body from {self.peer}: {len(body)} of {length} bytes")
        logger.debug(f"Received {code} ({length} bytes) from {self.peer}")
        return Response(code=code, length=length, body=body.decode("utf-8", errors="replace"))

    def write(self, data: bytes) -> None:
        """
        Send data to the socket.

        Raises:
            WriteError: the socket accepted fewer bytes than requested
        """
        try:
            sent = self._sock.send(data)
        except OSError as exc:
            raise WriteError(f"Failed to write to varnishadm on {self.peer}: {exc}") from exc
        if sent != len(data):
            raise WriteError(
                f"Failed to write to varnishadm on {self.peer}: "
                f"wrote {sent} of {len(data)} bytes"
            )

    def send_command(self, text: str) -> None:
        """Write the command text followed by its terminator."""
        logger.debug(f"Sending {text!r} to {self.peer}")
        self.write(encode_command(text))

    def _discard_stale(self) -> None:
        while self._stale:
            code, length, _ = self._read_frame()
            self._stale -= 1
            logger.debug(f"Discarded late {code} reply ({length} bytes) from {self.peer}")

    def _read_frame(self) -> Tuple[int, int, bytes]:
        # A status line consumed before a timeout stays in _partial until its body is read
        if self._partial is None:
            self._partial = self._read_status_line()
        code, length = self._partial
        body = self._read_body(length)
        self._partial = None
        return code, length, body

    def _read_status_line(self) -> Tuple[int, int]:
        while True:
            line = self._readline()
            if not line:
                raise ProtocolError("Failed to get numeric code in response")
            status = parse_status_line(line.decode("latin-1"))
            if status is not None:
                return status

    def _read_body(self, length: int) -> bytes:
        while len(self._buffer) < length and self._fill():
            pass
        body = bytes(self._buffer[:length])
        del self._buffer[:length]
        return body

    def _readline(self) -> bytes:
        """Return the next line including its newline, or what is left at end of stream."""
        while True:
            index = self._buffer.find(b"\n")
            if index >= 0:
                line = bytes(self._buffer[:index + 1])
                del self._buffer[:index + 1]
                return line
            if not self._fill():
                line = bytes(self._buffer)
                self._buffer.clear()
                return line

    def _fill(self) -> bool:
        """Receive one chunk into the buffer. Returns False at end of stream."""
        if self._eof:
            return False
        try:
            chunk = self._sock.recv(self.chunk_size)
        except socket.timeout as exc:
            raise ReadTimeoutError(f"Timed out reading from socket {self.peer}") from exc
        except OSError as exc:
            raise ProtocolError(f"Connection to {self.peer} lost: {exc}") from exc
        if not chunk:
            self._eof = True
            return False
        self._buffer.extend(chunk)
        return True
