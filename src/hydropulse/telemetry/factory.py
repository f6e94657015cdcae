# src/hydropulse/telemetry/factory.py
"""Factory functions for creating a TelemetryOrchestrator from settings.

This module provides the glue between configuration (TelemetrySettings)
and the runtime orchestrator. It handles:
1. Discovering backend classes via pluggy hooks
2. Resolving which backends act as primary and fallback
3. Instantiating both and constructing the orchestrator

Usage:
    from hydropulse.telemetry.factory import create_orchestrator

    orchestrator = create_orchestrator({"service_name": "checkout", "service_version": "1.4.2"})
    await orchestrator.initialize()
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import pluggy
import structlog

from hydropulse.backends import BuiltinBackendsPlugin
from hydropulse.backends.hookspecs import PROJECT_NAME, HydropulseBackendSpec
from hydropulse.backends.protocols import BackendProtocol
from hydropulse.contracts.enums import AUTO_BACKEND_MODE
from hydropulse.contracts.errors import BackendRegistryError
from hydropulse.core.clock import Clock
from hydropulse.core.config import TelemetrySettings, load_settings
from hydropulse.core.logging import configure_logging
from hydropulse.telemetry.orchestrator import TelemetryOrchestrator
from hydropulse.telemetry.sampling import RandomSource

logger = structlog.get_logger(__name__)

DEFAULT_BACKEND_NAME = "console"

_REGISTRY = "backend_registry"


def _resolve_backend_name(backend_class: type[BackendProtocol]) -> str:
    """Backend name from the class-level ``_name``, else from a throwaway instance.

    Raises:
        BackendRegistryError: If the name is not a non-empty string.
    """
    name = backend_class.__dict__.get("_name")
    if name is None:
        name = backend_class().name
    if not isinstance(name, str) or name == "":
        raise BackendRegistryError(backend_class.__name__, f"Backend name must be a non-empty string, got {name!r}")
    return name


def discover_backend_registry(
    backend_plugins: Iterable[Any] = (),
) -> dict[str, type[BackendProtocol]]:
    """Discover telemetry backends via pluggy hooks.

    Registers the built-in backends plus any plugin objects provided by the
    caller, then calls ``hydropulse_get_backends`` hooks to build the
    name -> class registry.

    Args:
        backend_plugins: Additional plugin objects implementing
            ``hydropulse_get_backends``.

    Returns:
        Mapping of backend name to backend class.

    Raises:
        BackendRegistryError: If a plugin implements an unknown hook, a hook
            fails or returns something other than an iterable of classes,
            or two backends share a name.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(HydropulseBackendSpec)

    for plugin in [BuiltinBackendsPlugin(), *backend_plugins]:
        plugin_manager.register(plugin)
        try:
            plugin_manager.check_pending()
        except pluggy.PluginValidationError as e:
            raise BackendRegistryError(_REGISTRY, f"Invalid backend plugin {type(plugin).__name__}: {e}") from e

    registry: dict[str, type[BackendProtocol]] = {}
    # pluggy returns hookimpls in registration order; builtins come first
    for hook_impl in plugin_manager.hook.hydropulse_get_backends.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            backends = hook_impl.function()
        except Exception as e:
            raise BackendRegistryError(
                _REGISTRY,
                f"Backend plugin {plugin_name} failed in hydropulse_get_backends: {e}",
            ) from e

        if isinstance(backends, str) or not isinstance(backends, Iterable):
            raise BackendRegistryError(
                _REGISTRY,
                f"hydropulse_get_backends in plugin {plugin_name} returned {type(backends).__name__}; "
                "expected iterable of backend classes",
            )

        for backend_class in backends:
            backend_name = _resolve_backend_name(backend_class)
            if backend_name in registry:
                raise BackendRegistryError(
                    backend_name,
                    f"Duplicate backend name '{backend_name}' discovered: "
                    f"{registry[backend_name].__name__} and {backend_class.__name__}",
                )
            registry[backend_name] = backend_class

    return registry


def _require_registered(name: str, registry: Mapping[str, type[BackendProtocol]]) -> str:
    if name not in registry:
        raise BackendRegistryError(name, f"Unknown backend. Available backends: {sorted(registry)}")
    return name


def resolve_backend_pair(
    settings: TelemetrySettings,
    registry: Mapping[str, type[BackendProtocol]],
) -> tuple[str, str]:
    """Pick the primary and fallback backend names.

    Primary:
        - named mode: backend.mode
        - auto mode: the first connection (in declaration order) naming a
          registered backend, else "console"
    Fallback:
        - backend.fallback when set
        - else the next registered connection that differs from the primary
        - else "console"

    A pair naming the same backend is returned with a warning: failover
    would only reach a second instance of the same destination.

    Raises:
        BackendRegistryError: If a named backend is not registered
    """
    backend = settings.backend
    connection_names = [name for name in backend.connections if name in registry]
    for name in backend.connections:
        if name not in registry:
            logger.warning("Connection configured for unknown backend, ignoring", backend=name)

    if backend.mode == AUTO_BACKEND_MODE:
        primary = connection_names[0] if connection_names else DEFAULT_BACKEND_NAME
    else:
        primary = backend.mode
    _require_registered(primary, registry)

    if backend.fallback is not None:
        fallback = backend.fallback
    else:
        fallback = next((name for name in connection_names if name != primary), DEFAULT_BACKEND_NAME)
    _require_registered(fallback, registry)

    if fallback == primary:
        logger.warning(
            "Fallback backend is the same as the primary",
            backend=primary,
            mode=backend.mode,
        )

    return primary, fallback


def create_orchestrator(
    settings: TelemetrySettings | Mapping[str, Any],
    *,
    backend_plugins: Iterable[Any] = (),
    clock: Clock | None = None,
    rng: RandomSource | None = None,
    configure_logs: bool = False,
) -> TelemetryOrchestrator:
    """Create a TelemetryOrchestrator with backends chosen from settings.

    Backends are instantiated but not initialized; call
    ``await orchestrator.initialize()`` (or use ``async with``).

    With configure_logs=True, hydropulse diagnostics are rendered to stderr
    at a level chosen by settings.debug (see core.logging.configure_logging).

    Raises:
        TelemetryConfigError: If settings are missing or invalid
        BackendRegistryError: If discovery fails or a named backend is unknown
    """
    telemetry_settings = load_settings(settings)
    if configure_logs:
        configure_logging(telemetry_settings)
    registry = discover_backend_registry(backend_plugins)
    primary_name, fallback_name = resolve_backend_pair(telemetry_settings, registry)

    logger.debug("Backends resolved", primary=primary_name, fallback=fallback_name, mode=telemetry_settings.backend.mode)
    return TelemetryOrchestrator(
        telemetry_settings,
        primary=registry[primary_name](),
        fallback=registry[fallback_name](),
        clock=clock,
        rng=rng,
    )
