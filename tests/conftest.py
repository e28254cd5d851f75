"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from typing import AsyncGenerator, Iterable

from varnish_admin.config.settings import ConnectionConfig
from varnish_admin.network.stub_server import StubAdminServer
from varnish_admin.protocol.codec import FrameCodec

SECRET = "foo\n"


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Codec Fixtures
# ============================================================================

@pytest.fixture
def socket_pair():
    """
    A connected pair of sockets.

    The first socket is the client side (0.5s timeout), the second is
    driven by the test to play the listener.
    """
    client, listener = socket.socketpair()
    client.settimeout(0.5)
    yield client, listener
    client.close()
    listener.close()


@pytest.fixture
def codec(socket_pair) -> FrameCodec:
    """Create a FrameCodec on the client side of socket_pair."""
    return FrameCodec(socket_pair[0], peer="test:0")


# ============================================================================
# Connection Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest.fixture
def config(server_port: int) -> ConnectionConfig:
    """Connection config pointing at server_port without a secret."""
    return ConnectionConfig(host='127.0.0.1', port=server_port, secret="", timeout=2)


@pytest.fixture
def secret() -> str:
    """The shared secret the secured stub listener expects."""
    return SECRET


@pytest.fixture
def secret_config(server_port: int) -> ConnectionConfig:
    """Connection config pointing at server_port with the test secret."""
    return ConnectionConfig(host='127.0.0.1', port=server_port, secret=SECRET, timeout=2)


# ============================================================================
# Server Fixtures
# ============================================================================

async def _serve(srv: StubAdminServer) -> AsyncGenerator[StubAdminServer, None]:
    server_task = asyncio.create_task(srv.start())

    # Wait for server to be ready
    await asyncio.sleep(0.1)

    yield srv

    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


@pytest_asyncio.fixture
async def stub_server(server_port: int) -> AsyncGenerator[StubAdminServer, None]:
    """
    Create and start a stub admin listener without auth.

    This fixture:
    1. Creates a StubAdminServer on a random free port
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    async for srv in _serve(StubAdminServer(host='127.0.0.1', port=server_port)):
        yield srv


@pytest_asyncio.fixture
async def secured_server(server_port: int) -> AsyncGenerator[StubAdminServer, None]:
    """Create and start a stub admin listener that requires SECRET."""
    async for srv in _serve(StubAdminServer(host='127.0.0.1', port=server_port, secret=SECRET)):
        yield srv


@pytest_asyncio.fixture
async def raw_server(server_port: int):
    """
    Factory for a hand-scripted listener on server_port.

    Usage:
        async def test_something(raw_server, config):
            await raw_server(b"200 2\\nhi\\n", replies=[b"300 4\\nnope\\n"])

    The listener sends `greeting`, then answers each request line with the
    next entry of `replies`, first sleeping for the matching entry of
    `delays` if there is one. Once replies run out it keeps reading without
    answering, so further commands time out.
    """
    servers = []
    writers = set()

    async def factory(greeting: bytes, replies: Iterable[bytes] = (), delays: Iterable[float] = ()):
        pending = list(replies)
        pauses = list(delays)

        async def handle(reader, writer):
            writers.add(writer)
            writer.write(greeting)
            await writer.drain()
            for index, reply in enumerate(pending):
                if not await reader.readline():
                    break
                if index < len(pauses):
                    await asyncio.sleep(pauses[index])
                writer.write(reply)
                await writer.drain()
            await reader.read()
            writers.discard(writer)
            writer.close()

        server = await asyncio.start_server(handle, '127.0.0.1', server_port)
        servers.append(server)
        return server

    yield factory

    for writer in list(writers):
        writer.close()
    for server in servers:
        server.close()
        await server.wait_closed()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

