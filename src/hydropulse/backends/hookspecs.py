# src/hydropulse/backends/hookspecs.py
"""pluggy hook specifications for telemetry backends.

Backends implement these hooks to register themselves by name. The
factory calls them when building the backend registry, so adding a backend
never requires touching orchestrator code.

Usage (implementing a backend plugin):
    from hydropulse.backends.hookspecs import hookimpl

    class MyBackendPlugin:
        @hookimpl
        def hydropulse_get_backends(self):
            return [MyBackend]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from hydropulse.backends.protocols import BackendProtocol

PROJECT_NAME = "hydropulse"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class HydropulseBackendSpec:
    """Hook specifications for telemetry backend plugins."""

    @hookspec
    def hydropulse_get_backends(self) -> list[type["BackendProtocol"]]:  # type: ignore[empty-body]
        """Return telemetry backend classes.

        Returns:
            List of backend classes (not instances) that implement
            BackendProtocol and can be constructed with no arguments
        """
