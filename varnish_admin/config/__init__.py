"""Configuration module for varnish-admin."""

from .settings import ConnectionConfig, Settings, settings

__all__ = ["ConnectionConfig", "Settings", "settings"]
