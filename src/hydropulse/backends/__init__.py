# src/hydropulse/backends/__init__.py
"""Telemetry backends.

This package defines the capability contract every backend implements and
ships the built-in console backend. Backends are discovered via pluggy
hooks; the BuiltinBackendsPlugin in this module registers the built-ins.

Usage:
    from hydropulse.backends import BackendProtocol, ConsoleBackend
"""

from hydropulse.backends.console import ConsoleBackend
from hydropulse.backends.hookspecs import hookimpl
from hydropulse.backends.protocols import BackendProtocol


class BuiltinBackendsPlugin:
    """Plugin that registers built-in telemetry backends."""

    @hookimpl
    def hydropulse_get_backends(self) -> list[type]:
        """Return built-in backend classes."""
        return [ConsoleBackend]


__all__ = [
    "BackendProtocol",
    "BuiltinBackendsPlugin",
    "ConsoleBackend",
]
