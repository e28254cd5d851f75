"""
Stub Admin Listener

An asyncio TCP server that speaks the admin socket protocol well enough to
exercise the client without a running cache proxy. It keeps a child state
and a ban list in memory and answers the commands the client uses.

Usage:
    server = StubAdminServer(port=6082, secret="foo\\n")
    asyncio.run(server.start())
"""

import asyncio
import logging
import time
from asyncio import StreamReader, StreamWriter
from typing import Dict, List, Optional, Tuple

from ..config.settings import settings
from ..protocol.auth import compute_auth_response, generate_challenge
from ..protocol.codec import format_response, parse_command
from ..protocol.codes import Command, StatusCode

logger = logging.getLogger(__name__)

BANNER = (
    "-----------------------------\n"
    "Varnish Cache CLI 1.0\n"
    "-----------------------------\n"
    "stub admin listener\n"
    "\n"
    "Type 'help' for command list.\n"
    "Type 'quit' to close CLI session.\n"
)


class StubAdminServer:
    """
    In-memory admin listener for tests and local experiments.

    Attributes:
        host: Bind address
        port: Port number
        secret: If set, connections must answer an auth challenge first
        running: Whether the simulated child process is running
        bans: Ban expressions received so far, oldest first
        commands: Every request line received, in order
        script: verb -> (code, body) overriding the built-in handlers
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            secret: str = "",
            running: bool = True,
    ):
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.secret = secret
        self.running = running
        self.bans: List[str] = []
        self.commands: List[str] = []
        self.script: Dict[str, Tuple[int, str]] = {}

        self._server: Optional[asyncio.Server] = None
        self._serving = False
        self._connection_count = 0
        self._writers = set()

    async def handle_client(self, reader: StreamReader, writer: StreamWriter) -> None:
        """
        Serve one admin connection until quit or disconnect.

        Each request line gets exactly one framed response.
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        self._writers.add(writer)
        logger.debug(f"Admin client connected: {addr}")

        challenge = generate_challenge() if self.secret else None
        try:
            if challenge:
                writer.write(self._challenge_response(challenge))
            else:
                writer.write(format_response(StatusCode.OK, BANNER))
            await writer.drain()

            while True:
                data = await reader.readline()
                if not data:
                    logger.debug(f"Admin client disconnected: {addr}")
                    break

                line = data.decode("utf-8", errors="replace").rstrip("\r\n")
                self.commands.append(line)

                if challenge:
                    challenge = self._answer_challenge(line, challenge, writer)
                    await writer.drain()
                    continue

                code, body = self.dispatch(line)
                writer.write(format_response(code, body))
                await writer.drain()

                if code == StatusCode.CLOSE:
                    logger.debug(f"Admin client quit: {addr}")
                    break

        except ConnectionError:
            logger.debug(f"Connection lost to admin client: {addr}")
        finally:
            self._writers.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    def dispatch(self, line: str) -> Tuple[int, str]:
        """
        Execute one authenticated request line.

        Returns:
            (code, body) to frame back to the client
        """
        try:
            verb, args = parse_command(line)
        except ValueError:
            return StatusCode.SYNTAX, "Syntax Error: unbalanced quotes"

        if verb in self.script:
            return self.script[verb]

        if verb == Command.PING:
            return StatusCode.OK, f"PONG {int(time.time())} 1.0"
        if verb == Command.STATUS:
            return StatusCode.OK, f"Child in state {self._child_state}"
        if verb == Command.START:
            if self.running:
                return StatusCode.CANT, "Child in state running"
            self.running = True
            return StatusCode.OK, ""
        if verb == Command.STOP:
            if not self.running:
                return StatusCode.CANT, "Child in state stopped"
            self.running = False
            return StatusCode.OK, ""
        if verb == Command.BAN:
            if not args:
                return StatusCode.TOO_FEW, "Too few parameters"
            self.bans.append(line.strip().partition(" ")[2].strip())
            return StatusCode.OK, ""
        if verb == Command.BAN_LIST:
            return StatusCode.OK, self._format_ban_list()
        if verb == Command.QUIT:
            return StatusCode.CLOSE, "Closing CLI connection"

        return StatusCode.UNKNOWN, "Unknown request.\nType 'help' for more info."

    @property
    def _child_state(self) -> str:
        return "running" if self.running else "stopped"

    def _format_ban_list(self) -> str:
        lines = ["Present bans:"]
        now = time.time()
        for expression in reversed(self.bans):
            lines.append(f"{now:.6f}     0 -  {expression}")
        return "\n".join(lines) + "\n"

    def _challenge_response(self, challenge: str) -> bytes:
        return format_response(StatusCode.AUTH, f"{challenge}\n\nAuthentication required.\n")

    def _answer_challenge(self, line: str, challenge: str, writer: StreamWriter) -> Optional[str]:
        """Check an auth attempt. Returns the challenge still outstanding, or None once authenticated."""
        verb, _, digest = line.partition(" ")
        if verb == Command.AUTH and digest == compute_auth_response(challenge, self.secret):
            writer.write(format_response(StatusCode.OK, BANNER))
            return None

        challenge = generate_challenge()
        writer.write(self._challenge_response(challenge))
        return challenge

    async def start(self) -> None:
        """
        Start listening and serve until cancelled or stopped.

        Example:
            server = StubAdminServer(port=6082)
            asyncio.run(server.start())
        """
        if self._serving:
            return

        self._server = await asyncio.start_server(self.handle_client, self.host, self.port)
        self._serving = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Stub admin listener on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            logger.debug("Stub admin listener cancelled")
        finally:
            self._serving = False

    async def stop(self) -> None:
        """Stop listening and wait for the server to close."""
        if self._server is None:
            return

        self._server.close()
        for writer in list(self._writers):
            writer.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._serving = False

    def is_serving(self) -> bool:
        return self._serving

    def get_stats(self) -> dict:
        return {
            "serving": self._serving,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "total_commands": len(self.commands),
            "bans": len(self.bans),
            "child_state": self._child_state,
        }
