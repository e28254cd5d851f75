"""
Tests for the VarnishAdmin Client

These tests verify the command helpers:
- build_url_ban(): URL to ban expression
- purge(), purge_url(), purge_list()
- status(), start(), stop()

Unit tests replace command() with a scripted double; the integration
tests at the bottom drive the stub listener end to end.

Run with: python -m pytest tests/test_client.py -v
"""

import asyncio
import logging

import pytest

from varnish_admin.client import VarnishAdmin, build_url_ban
from varnish_admin.protocol.errors import CommandError, ConnectError, ReadTimeoutError


class ScriptedCommands:
    """Stands in for AdminSession.command, answering from a table."""

    def __init__(self, replies: dict):
        self.replies = replies
        self.sent = []

    def __call__(self, text: str, expected: int = 200) -> str:
        self.sent.append(text)
        reply = self.replies[text]
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def admin() -> VarnishAdmin:
    """A client that has not connected anywhere."""
    return VarnishAdmin(host='127.0.0.1', port=6082, secret="", connect=False)


def script(monkeypatch, admin: VarnishAdmin, **replies) -> ScriptedCommands:
    """Install scripted replies, keyed by command with '.' spelled '_'."""
    commands = ScriptedCommands({key.replace("_", "."): value for key, value in replies.items()})
    monkeypatch.setattr(admin, "command", commands)
    return commands


class TestBuildUrlBan:
    """Test URL to ban expression conversion."""

    def test_basic(self):
        assert build_url_ban("http://example.com/foo") == (
            "req.http.host == example.com && req.url ~ /foo/.*"
        )

    def test_port_and_query_are_dropped(self):
        assert build_url_ban("https://example.com:8443/a/b?page=2#top") == (
            "req.http.host == example.com && req.url ~ /a/b/.*"
        )

    def test_host_case_is_kept(self):
        assert build_url_ban("http://Example.COM/Foo") == (
            "req.http.host == Example.COM && req.url ~ /Foo/.*"
        )

    @pytest.mark.parametrize("url", ["http://[::1]/foo", "http://[::1]:8080/foo"])
    def test_ipv6_host_keeps_brackets(self, url):
        assert build_url_ban(url) == "req.http.host == [::1] && req.url ~ /foo/.*"

    def test_userinfo_is_dropped(self):
        assert build_url_ban("http://user:pw@Example.com:81/x") == (
            "req.http.host == Example.com && req.url ~ /x/.*"
        )

    def test_no_path(self):
        assert build_url_ban("http://example.com") == "req.http.host == example.com && req.url ~ /.*"

    def test_unparseable_url_gives_empty_components(self):
        """Test missing host and path are left empty rather than rejected."""
        assert build_url_ban("") == "req.http.host ==  && req.url ~ /.*"


class TestPurge:
    """Test ban helpers."""

    def test_purge(self, monkeypatch, admin):
        """Test the expression is passed through verbatim."""
        commands = ScriptedCommands({"ban req.url ~ ^/news && obj.status == 200": ""})
        monkeypatch.setattr(admin, "command", commands)

        assert admin.purge("req.url ~ ^/news && obj.status == 200") == ""
        assert commands.sent == ["ban req.url ~ ^/news && obj.status == 200"]

    def test_purge_url(self, monkeypatch, admin):
        commands = ScriptedCommands({"ban req.http.host == example.com && req.url ~ /foo/.*": "ok"})
        monkeypatch.setattr(admin, "command", commands)

        assert admin.purge_url("http://example.com/foo") == "ok"

    def test_purge_propagates_failure(self, monkeypatch, admin):
        commands = ScriptedCommands({"ban bad": CommandError("ban bad", 106, "Expected conditional")})
        monkeypatch.setattr(admin, "command", commands)

        with pytest.raises(CommandError):
            admin.purge("bad")

    def test_purge_list(self, monkeypatch, admin):
        """Test the trimmed body is split into raw lines."""
        script(monkeypatch, admin, ban_list="Present bans:\n1.0 0 -  req.url ~ /a\n1.0 0 C\n\n")

        assert admin.purge_list() == ["Present bans:", "1.0 0 -  req.url ~ /a", "1.0 0 C"]


class TestStatus:
    """Test child status parsing."""

    def test_running(self, monkeypatch, admin):
        script(monkeypatch, admin, status="Child in state running")
        assert admin.status() is True

    @pytest.mark.parametrize("body", [
        "Child in state stopped",
        "Child in state starting",
        "Child in state runningish",
        "no state reported",
        "",
    ])
    def test_not_running(self, monkeypatch, admin, body):
        script(monkeypatch, admin, status=body)
        assert admin.status() is False

    @pytest.mark.parametrize("error", [
        CommandError("status", 300, "busy"),
        ReadTimeoutError("timed out"),
        BrokenPipeError("gone"),
    ])
    def test_failure_is_false(self, monkeypatch, admin, error):
        """Test failures are reported as not running instead of raised."""
        script(monkeypatch, admin, status=error)
        assert admin.status() is False

    def test_not_connected_is_false(self, admin):
        assert admin.status() is False


class TestStartStop:
    """Test start() and stop()."""

    def test_start_when_running(self, monkeypatch, admin, caplog):
        """Test start sends nothing if the child already runs."""
        commands = script(monkeypatch, admin, status="Child in state running")

        with caplog.at_level(logging.INFO, logger="varnish_admin.client"):
            assert admin.start() is True

        assert commands.sent == ["status"]
        assert "already started" in caplog.text

    def test_start_when_stopped(self, monkeypatch, admin):
        commands = script(monkeypatch, admin, status="Child in state stopped", start="")

        assert admin.start() is True
        assert commands.sent == ["status", "start"]

    def test_start_failure(self, monkeypatch, admin):
        script(
            monkeypatch, admin,
            status="Child in state stopped",
            start=CommandError("start", 300, "Child in state starting"),
        )

        with pytest.raises(CommandError):
            admin.start()

    def test_stop_when_stopped(self, monkeypatch, admin, caplog):
        commands = script(monkeypatch, admin, status="Child in state stopped")

        with caplog.at_level(logging.INFO, logger="varnish_admin.client"):
            assert admin.stop() is True

        assert commands.sent == ["status"]
        assert "already stopped" in caplog.text

    def test_stop_when_running(self, monkeypatch, admin):
        commands = script(monkeypatch, admin, status="Child in state running", stop="")

        assert admin.stop() is True
        assert commands.sent == ["status", "stop"]

    def test_stop_failure(self, monkeypatch, admin):
        script(
            monkeypatch, admin,
            status="Child in state running",
            stop=CommandError("stop", 300, "nope"),
        )

        with pytest.raises(CommandError):
            admin.stop()


class TestConstruction:
    """Test how the client builds its configuration."""

    def test_secret_file(self, tmp_path):
        path = tmp_path / "secret"
        path.write_bytes(b"foo\n")

        admin = VarnishAdmin(secret_file=str(path), connect=False)

        assert admin.config.secret == "foo\n"

    def test_secret_wins_over_secret_file(self, tmp_path):
        path = tmp_path / "secret"
        path.write_bytes(b"foo\n")

        admin = VarnishAdmin(secret="bar", secret_file=str(path), connect=False)

        assert admin.config.secret == "bar"

    def test_connect_failure_raises(self, config):
        """Test a failed connect in the constructor propagates."""
        with pytest.raises(ConnectError):
            VarnishAdmin(config=config)


@pytest.mark.asyncio
@pytest.mark.integration
class TestEndToEnd:
    """End-to-end tests against the stub listener."""

    async def test_complete_workflow(self, stub_server, config):
        """Test a complete operator workflow."""
        admin = await asyncio.to_thread(VarnishAdmin, config=config)

        assert (await asyncio.to_thread(admin.ping)).startswith("PONG")

        await asyncio.to_thread(admin.purge_url, "http://example.com/foo")
        await asyncio.to_thread(admin.purge, "req.url ~ ^/static/")
        assert stub_server.bans == [
            "req.http.host == example.com && req.url ~ /foo/.*",
            "req.url ~ ^/static/",
        ]

        bans = await asyncio.to_thread(admin.purge_list)
        assert bans[0] == "Present bans:"
        assert bans[1].endswith("req.url ~ ^/static/")
        assert bans[2].endswith("req.http.host == example.com && req.url ~ /foo/.*")

        assert await asyncio.to_thread(admin.status) is True
        assert await asyncio.to_thread(admin.stop) is True
        assert stub_server.running is False
        assert await asyncio.to_thread(admin.status) is False
        assert await asyncio.to_thread(admin.stop) is True
        assert await asyncio.to_thread(admin.start) is True
        assert stub_server.running is True

        await asyncio.to_thread(admin.quit)
        assert stub_server.commands[-1] == "quit"

    async def test_authenticated_client(self, secured_server, server_port, secret):
        """Test the client authenticates before running commands."""
        admin = await asyncio.to_thread(
            VarnishAdmin, host='127.0.0.1', port=server_port, secret=secret, timeout=2,
        )

        assert await asyncio.to_thread(admin.status) is True
        await asyncio.to_thread(admin.quit)

    async def test_ban_without_expression(self, stub_server, config):
        """Test the listener's rejection surfaces as CommandError."""
        admin = await asyncio.to_thread(VarnishAdmin, config=config)

        with pytest.raises(CommandError) as exc_info:
            await asyncio.to_thread(admin.purge, "")

        assert exc_info.value.code == 104
        assert admin.is_open
        await asyncio.to_thread(admin.quit)
