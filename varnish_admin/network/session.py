"""
Admin Session Module

This module owns the TCP connection to the admin listener: it opens the
socket, performs the greeting and optional auth handshake, dispatches one
command at a time and guarantees the socket is released exactly once.

Session lifecycle:
    DISCONNECTED -> CONNECTED -> AUTHENTICATED (only if challenged) -> CLOSED

Cleanup is tied to the session object rather than left to the caller:
- `with AdminSession(config) as session:` sends quit and closes on exit
- close() releases the socket immediately without sending quit
- a session that is garbage collected while open sends a best-effort quit
  line and closes its socket through a weakref finalizer
"""

import logging
import socket
import threading
import weakref
from enum import Enum, auto
from typing import Optional

from ..config.settings import ConnectionConfig
from ..protocol.auth import auth_command, extract_challenge
from ..protocol.codec import FrameCodec, encode_command
from ..protocol.codes import Command, Response, StatusCode
from ..protocol.errors import (
    AuthFailedError,
    AuthRequiredError,
    CommandError,
    ConnectError,
    ProtocolError,
    SessionError,
    VarnishAdminError,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of an admin session."""
    DISCONNECTED = auto()
    CONNECTED = auto()
    AUTHENTICATED = auto()
    CLOSED = auto()


def _release_socket(sock: socket.socket) -> None:
    """Finalizer for sessions collected while still open."""
    try:
        sock.send(encode_command(Command.QUIT.value))
    except OSError:
        pass
    finally:
        sock.close()


class AdminSession:
    """
    A single blocking connection to the admin socket.

    Only one command may be outstanding at a time. A second call made while
    a command is in flight (from another thread, or re-entrantly) raises
    SessionError instead of interleaving reads and writes on the socket.

    Usage:
        with AdminSession(ConnectionConfig(port=6082)) as session:
            print(session.command("ping"))

    Attributes:
        config: The immutable connection configuration
        banner: Body of the effective greeting once connected
    """

    def __init__(self, config: ConnectionConfig = None):
        self.config = config if config is not None else ConnectionConfig()
        self.banner: Optional[str] = None

        self._state = SessionState.DISCONNECTED
        self._sock: Optional[socket.socket] = None
        self._codec: Optional[FrameCodec] = None
        self._finalizer: Optional[weakref.finalize] = None
        self._in_flight = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if commands can be sent on this session."""
        return self._state in (SessionState.CONNECTED, SessionState.AUTHENTICATED)

    def connect(self) -> str:
        """
        Open the socket and complete the greeting.

        Returns:
            The greeting banner (the auth reply if the listener challenged us)

        Raises:
            ConnectError: the socket could not be opened
            AuthRequiredError: challenged without a configured secret
            AuthFailedError: the challenge-response exchange failed
            ProtocolError: the effective greeting code is not 200
            ReadTimeoutError: the greeting did not arrive in time
        """
        if self._state is not SessionState.DISCONNECTED:
            raise SessionError(f"Cannot connect a session in state {self._state.name}")

        host, port = self.config.host, self.config.port
        try:
            sock = socket.create_connection((host, port), timeout=self.config.timeout)
        except OSError as exc:
            raise ConnectError(host, port, str(exc)) from exc

        self._sock = sock
        self._codec = FrameCodec(sock, peer=self.config.address)
        self._finalizer = weakref.finalize(self, _release_socket, sock)
        self._state = SessionState.CONNECTED
        logger.debug(f"Socket open to {self.config.address}")

        try:
            self.banner = self._handshake()
        except BaseException:
            self.close()
            raise

        logger.info(f"Connected to varnishadm on {self.config.address}")
        return self.banner

    def command(self, text: str, expected: int = StatusCode.OK) -> str:
        """
        Send a command and return the response body.

        Args:
            text: Command text without terminator (may be empty)
            expected: Status code that counts as success

        Returns:
            The response body

        Raises:
            CommandError: the response code differs from `expected`
            SessionError: the session is not open or a command is in flight
        """
        response = self.execute(text)
        if response.code != expected:
            raise CommandError(text, response.code, response.body)
        return response.body

    def execute(self, text: str) -> Response:
        """Send a command and return the framed response without checking its code."""
        if not self.is_open:
            raise SessionError(f"Session to {self.config.address} is {self._state.name.lower()}")
        if not self._in_flight.acquire(blocking=False):
            raise SessionError("Another command is already in flight on this session")
        try:
            self._codec.send_command(text)
            return self._codec.read_response()
        finally:
            self._in_flight.release()

    def quit(self) -> None:
        """Graceful close: send quit, ignore whatever happens, then close."""
        if self.is_open:
            try:
                self.command(Command.QUIT.value, expected=StatusCode.CLOSE)
            except (VarnishAdminError, OSError) as exc:
                logger.warning(f"quit on {self.config.address} failed: {exc}")
        self.close()

    def close(self) -> None:
        """Brutal close: release the socket without sending quit. Safe to call repeatedly."""
        if self._finalizer is not None:
            self._finalizer.detach()
            self._finalizer = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None
            self._codec = None
            logger.info(f"Closed session to varnishadm on {self.config.address}")
        self._state = SessionState.CLOSED

    def _handshake(self) -> str:
        greeting = self._codec.read_response()
        if greeting.code == StatusCode.AUTH:
            banner = self._authenticate(greeting.body)
            self._state = SessionState.AUTHENTICATED
            logger.info(f"Authenticated to varnishadm on {self.config.address}")
            return banner
        if greeting.code != StatusCode.OK:
            raise ProtocolError(
                f"Bad response from varnishadm on {self.config.address}: {greeting.code}"
            )
        return greeting.body

    def _authenticate(self, challenge_body: str) -> str:
        if not self.config.secret:
            raise AuthRequiredError(
                f"Authentication required by varnishadm on {self.config.address}; "
                "configure a secret or secret file"
            )
        challenge = extract_challenge(challenge_body)
        try:
            return self.command(auth_command(challenge, self.config.secret))
        except (VarnishAdminError, OSError):
            raise AuthFailedError("Authentication failed") from None

    def __enter__(self):
        if self._state is SessionState.DISCONNECTED:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.quit()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.config.address} {self._state.name}>"
