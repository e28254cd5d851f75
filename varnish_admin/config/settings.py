"""
varnish-admin Configuration Settings

This module contains the configuration constants for the admin client and
the immutable per-connection configuration built from them.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Settings:
    """Client configuration settings."""

    # Network settings
    HOST: str = os.environ.get("VARNISH_ADMIN_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("VARNISH_ADMIN_PORT", "6082"))
    TIMEOUT: float = float(os.environ.get("VARNISH_ADMIN_TIMEOUT", "1"))

    # Authentication settings
    SECRET: str = os.environ.get("VARNISH_ADMIN_SECRET", "")
    SECRET_FILE: str = os.environ.get("VARNISH_ADMIN_SECRET_FILE", "")

    # Protocol settings
    STATUS_LINE_PATTERN: str = r"^(\d{3}) (\d+)"
    CHALLENGE_LENGTH: int = 32
    READ_CHUNK_SIZE: int = 1024

    # Logging settings
    DEBUG: bool = os.environ.get("VARNISH_ADMIN_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("VARNISH_ADMIN_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Immutable description of one admin socket connection.

    Attributes:
        host: Address the admin listener is bound to
        port: Admin listener port
        secret: Shared secret for the auth challenge (empty disables auth)
        timeout: Seconds allowed for connect and for each blocking read
    """
    host: str = field(default_factory=lambda: settings.HOST)
    port: int = field(default_factory=lambda: settings.PORT)
    secret: str = field(default_factory=lambda: settings.SECRET, repr=False)
    timeout: float = field(default_factory=lambda: settings.TIMEOUT)

    def __post_init__(self):
        """Validate the configuration after initialization."""
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    @classmethod
    def from_settings(
            cls,
            host: Optional[str] = None,
            port: Optional[int] = None,
            secret: Optional[str] = None,
            timeout: Optional[float] = None,
    ) -> "ConnectionConfig":
        """Build a config from the global settings, applying non-None overrides."""
        return cls(
            host=host if host is not None else settings.HOST,
            port=port if port is not None else settings.PORT,
            secret=secret if secret is not None else settings.SECRET,
            timeout=timeout if timeout is not None else settings.TIMEOUT,
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"
