# tests/unit/backends/test_console_backend.py
"""Unit tests for ConsoleBackend.

Tests cover:
- Configuration validation (valid/invalid format and output values)
- JSON output with proper type serialization
- Pretty output
- Span bookkeeping (unknown span ids tolerated)
- Lifecycle (uninitialized sends fail, shutdown idempotent, health)
"""

import json
from datetime import UTC, datetime
from typing import Any

import pytest

from hydropulse.backends.console import ConsoleBackend
from hydropulse.backends.protocols import BackendProtocol
from hydropulse.contracts.enums import LogLevel
from hydropulse.contracts.errors import BackendInitError, BackendSendError
from hydropulse.contracts.events import LogData, MetricData, TraceData
from hydropulse.core.config import TelemetrySettings

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def base_timestamp() -> datetime:
    return datetime(2026, 1, 30, 12, 0, 0, tzinfo=UTC)


def _settings(**console_options: Any) -> TelemetrySettings:
    return TelemetrySettings(
        service_name="checkout",
        service_version="1.4.2",
        backend={"mode": "console", "connections": {"console": console_options}},
    )


# =============================================================================
# Configuration
# =============================================================================


class TestConsoleBackendConfiguration:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(ConsoleBackend(), BackendProtocol)
        assert ConsoleBackend().name == "console"

    @pytest.mark.asyncio
    async def test_defaults_without_connection_options(self) -> None:
        backend = ConsoleBackend()
        await backend.initialize(TelemetrySettings(service_name="s", service_version="1"))
        assert backend.is_healthy()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("output", ["stdout", "stderr"])
    @pytest.mark.parametrize("fmt", ["json", "pretty"])
    async def test_valid_options(self, fmt: str, output: str) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings(format=fmt, output=output))
        assert backend.is_healthy()

    @pytest.mark.asyncio
    async def test_invalid_format(self) -> None:
        with pytest.raises(BackendInitError, match="Invalid format 'xml'"):
            await ConsoleBackend().initialize(_settings(format="xml"))

    @pytest.mark.asyncio
    async def test_invalid_output(self) -> None:
        with pytest.raises(BackendInitError, match="Invalid output 'file'"):
            await ConsoleBackend().initialize(_settings(output="file"))

    @pytest.mark.asyncio
    async def test_non_string_format(self) -> None:
        with pytest.raises(BackendInitError, match="'format' must be a string"):
            await ConsoleBackend().initialize(_settings(format=3))


# =============================================================================
# Output
# =============================================================================


class TestConsoleBackendJsonOutput:
    @pytest.mark.asyncio
    async def test_metric_line(self, capsys: pytest.CaptureFixture[str], base_timestamp: datetime) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings(format="json"))

        await backend.record_metric(
            MetricData(name="orders_total", value=3, unit="count", attributes={"region": "eu"}, timestamp=base_timestamp)
        )

        record = json.loads(capsys.readouterr().out.strip())
        assert record["type"] == "metric"
        assert record["name"] == "orders_total"
        assert record["value"] == 3
        assert record["attributes"] == {"region": "eu"}
        assert record["timestamp"] == "2026-01-30T12:00:00+00:00"
        assert record["service"] == "checkout"

    @pytest.mark.asyncio
    async def test_log_level_serialized_as_value(self, capsys: pytest.CaptureFixture[str]) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings(format="json"))

        await backend.record_log(LogData(level=LogLevel.WARN, message="disk low"))

        record = json.loads(capsys.readouterr().out.strip())
        assert record["type"] == "log"
        assert record["level"] == "warn"

    @pytest.mark.asyncio
    async def test_stderr_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings(output="stderr"))

        await backend.record_metric(MetricData(name="m", value=1))

        captured = capsys.readouterr()
        assert captured.out == ""
        assert json.loads(captured.err.strip())["name"] == "m"


class TestConsoleBackendPrettyOutput:
    @pytest.mark.asyncio
    async def test_metric_line(self, capsys: pytest.CaptureFixture[str], base_timestamp: datetime) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings(format="pretty"))

        await backend.record_metric(MetricData(name="latency", value=12.5, timestamp=base_timestamp))

        assert capsys.readouterr().out.strip() == "[2026-01-30T12:00:00+00:00] metric: latency=12.5"

    @pytest.mark.asyncio
    async def test_log_line(self, capsys: pytest.CaptureFixture[str]) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings(format="pretty"))

        await backend.record_log(LogData(level=LogLevel.ERROR, message="payment failed"))

        assert capsys.readouterr().out.strip().endswith("log: ERROR payment failed")


# =============================================================================
# Spans and lifecycle
# =============================================================================


class TestConsoleBackendSpans:
    @pytest.mark.asyncio
    async def test_start_then_end(self, capsys: pytest.CaptureFixture[str]) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings())

        span_id = await backend.start_trace(TraceData(operation_name="load_cart"))
        await backend.end_trace(span_id, {"items": 2})

        lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        assert [line["type"] for line in lines] == ["span_start", "span_end"]
        assert lines[0]["span_id"] == span_id
        assert lines[1]["attributes"] == {"items": 2}

    @pytest.mark.asyncio
    async def test_unknown_span_id_ignored(self, capsys: pytest.CaptureFixture[str]) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings())

        await backend.end_trace("does-not-exist")

        assert capsys.readouterr().out == ""


class TestConsoleBackendLifecycle:
    @pytest.mark.asyncio
    async def test_send_before_initialize_fails(self) -> None:
        with pytest.raises(BackendSendError, match="not initialized"):
            await ConsoleBackend().record_metric(MetricData(name="m", value=1))

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self) -> None:
        backend = ConsoleBackend()
        await backend.initialize(_settings())

        await backend.shutdown()
        await backend.shutdown()

        assert not backend.is_healthy()

    @pytest.mark.asyncio
    async def test_flush_never_raises(self) -> None:
        backend = ConsoleBackend()
        await backend.flush()
