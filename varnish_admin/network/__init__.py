"""Network module for varnish-admin."""

from .session import AdminSession, SessionState
from .stub_server import StubAdminServer

__all__ = ["AdminSession", "SessionState", "StubAdminServer"]
