# tests/unit/telemetry/test_backend_factory.py
"""Tests for telemetry.factory -- backend discovery, resolution and orchestrator creation."""

from __future__ import annotations

from typing import Any

import pytest
from structlog.testing import capture_logs

from hydropulse.backends.console import ConsoleBackend
from hydropulse.backends.hookspecs import hookimpl
from hydropulse.contracts.enums import BackendRole
from hydropulse.contracts.errors import BackendRegistryError, TelemetryConfigError
from hydropulse.core.config import TelemetrySettings
from hydropulse.telemetry.factory import (
    create_orchestrator,
    discover_backend_registry,
    resolve_backend_pair,
)
from hydropulse.telemetry.orchestrator import TelemetryOrchestrator
from tests.fixtures.backends import PluginBackend, RecordingBackend

# =============================================================================
# Test Plugins
# =============================================================================


class ExtraBackendsPlugin:
    @hookimpl
    def hydropulse_get_backends(self) -> list[type]:
        return [PluginBackend]


class DuplicateConsolePlugin:
    @hookimpl
    def hydropulse_get_backends(self) -> list[type]:
        return [ConsoleBackend]


class NoneReturningPlugin:
    @hookimpl
    def hydropulse_get_backends(self) -> None:
        return None


class StringReturningPlugin:
    @hookimpl
    def hydropulse_get_backends(self) -> str:
        return "console"


class RaisingPlugin:
    @hookimpl
    def hydropulse_get_backends(self) -> list[type]:
        raise RuntimeError("plugin exploded")


class MisspelledHookPlugin:
    @hookimpl
    def hydropulse_get_backendz(self) -> list[type]:
        return [PluginBackend]


class InstanceNamedBackend(RecordingBackend):
    """No class-level _name; name comes from an instance."""

    def __init__(self) -> None:
        super().__init__("instance-named")


class InstanceNamedPlugin:
    @hookimpl
    def hydropulse_get_backends(self) -> list[type]:
        return [InstanceNamedBackend]


def _settings(**backend: Any) -> TelemetrySettings:
    return TelemetrySettings(service_name="checkout", service_version="1.0", backend=backend)


# =============================================================================
# Discovery
# =============================================================================


class TestDiscoverBackendRegistry:
    def test_builtin_console_registered(self) -> None:
        registry = discover_backend_registry()
        assert registry == {"console": ConsoleBackend}

    def test_extra_plugin_registered(self) -> None:
        registry = discover_backend_registry([ExtraBackendsPlugin()])
        assert registry["plugin"] is PluginBackend
        assert registry["console"] is ConsoleBackend

    def test_name_resolved_from_instance(self) -> None:
        registry = discover_backend_registry([InstanceNamedPlugin()])
        assert registry["instance-named"] is InstanceNamedBackend

    def test_duplicate_name_rejected(self) -> None:
        with pytest.raises(BackendRegistryError, match="Duplicate backend name 'console'"):
            discover_backend_registry([DuplicateConsolePlugin()])

    @pytest.mark.parametrize("plugin", [NoneReturningPlugin(), StringReturningPlugin()])
    def test_non_iterable_return_rejected(self, plugin: object) -> None:
        with pytest.raises(BackendRegistryError, match="expected iterable of backend classes"):
            discover_backend_registry([plugin])

    def test_raising_plugin_wrapped(self) -> None:
        with pytest.raises(BackendRegistryError, match="plugin exploded"):
            discover_backend_registry([RaisingPlugin()])

    def test_unknown_hook_rejected(self) -> None:
        with pytest.raises(BackendRegistryError, match="Invalid backend plugin MisspelledHookPlugin"):
            discover_backend_registry([MisspelledHookPlugin()])


# =============================================================================
# Resolution
# =============================================================================


class TestResolveBackendPair:
    @pytest.fixture
    def registry(self) -> dict[str, type]:
        return {"console": ConsoleBackend, "plugin": PluginBackend, "otlp": RecordingBackend}

    def test_auto_without_connections_uses_console(self, registry: dict[str, type]) -> None:
        assert resolve_backend_pair(_settings(), registry) == ("console", "console")

    @pytest.mark.parametrize(
        "backend",
        [{}, {"mode": "console"}, {"connections": {"otlp": {}}, "fallback": "otlp"}],
    )
    def test_same_primary_and_fallback_warns(self, registry: dict[str, type], backend: dict[str, Any]) -> None:
        with capture_logs() as logs:
            primary, fallback = resolve_backend_pair(_settings(**backend), registry)

        assert primary == fallback
        warnings = [entry for entry in logs if entry["event"] == "Fallback backend is the same as the primary"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"
        assert warnings[0]["backend"] == primary

    def test_distinct_pair_does_not_warn(self, registry: dict[str, type]) -> None:
        with capture_logs() as logs:
            resolve_backend_pair(_settings(connections={"otlp": {}}), registry)

        assert not [entry for entry in logs if entry["event"] == "Fallback backend is the same as the primary"]

    def test_auto_picks_first_connection(self, registry: dict[str, type]) -> None:
        settings = _settings(connections={"otlp": {}, "plugin": {}})
        assert resolve_backend_pair(settings, registry) == ("otlp", "plugin")

    def test_auto_single_connection_falls_back_to_console(self, registry: dict[str, type]) -> None:
        settings = _settings(connections={"otlp": {}})
        assert resolve_backend_pair(settings, registry) == ("otlp", "console")

    def test_auto_skips_unregistered_connections(self, registry: dict[str, type]) -> None:
        settings = _settings(connections={"faro": {}, "plugin": {}})
        assert resolve_backend_pair(settings, registry) == ("plugin", "console")

    def test_named_mode(self, registry: dict[str, type]) -> None:
        settings = _settings(mode="plugin", connections={"otlp": {}})
        assert resolve_backend_pair(settings, registry) == ("plugin", "otlp")

    def test_explicit_fallback(self, registry: dict[str, type]) -> None:
        settings = _settings(mode="otlp", fallback="plugin", connections={"console": {}})
        assert resolve_backend_pair(settings, registry) == ("otlp", "plugin")

    def test_unknown_named_mode(self, registry: dict[str, type]) -> None:
        with pytest.raises(BackendRegistryError, match="Unknown backend. Available backends"):
            resolve_backend_pair(_settings(mode="faro"), registry)

    def test_unknown_fallback(self, registry: dict[str, type]) -> None:
        with pytest.raises(BackendRegistryError) as exc_info:
            resolve_backend_pair(_settings(mode="otlp", fallback="faro"), registry)
        assert exc_info.value.backend_name == "faro"


# =============================================================================
# Orchestrator creation
# =============================================================================


class TestCreateOrchestrator:
    def test_creates_orchestrator_with_resolved_backends(self) -> None:
        orchestrator = create_orchestrator(
            {"service_name": "checkout", "service_version": "1.0", "backend": {"connections": {"plugin": {}}}},
            backend_plugins=[ExtraBackendsPlugin()],
        )

        assert isinstance(orchestrator, TelemetryOrchestrator)
        assert isinstance(orchestrator.current_backend, PluginBackend)
        assert orchestrator.current_role is BackendRole.PRIMARY
        assert not orchestrator.is_initialized

    def test_invalid_settings_fail_before_discovery(self) -> None:
        with pytest.raises(TelemetryConfigError):
            create_orchestrator({"service_name": "checkout"}, backend_plugins=[RaisingPlugin()])

    @pytest.mark.asyncio
    async def test_console_only_orchestrator_records(self, capsys: pytest.CaptureFixture[str]) -> None:
        orchestrator = create_orchestrator({"service_name": "checkout", "service_version": "1.0"})

        async with orchestrator:
            await orchestrator.metrics.counter("orders_total")

        assert '"name": "orders_total"' in capsys.readouterr().out
