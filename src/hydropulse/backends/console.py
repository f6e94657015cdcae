# src/hydropulse/backends/console.py
"""Console backend for telemetry data.

Writes metrics, spans and logs to stdout or stderr in JSON or
human-readable format. Used for local debugging and as the last-resort
fallback when no other backend is configured.
"""

from __future__ import annotations

import json
import sys
import uuid
from collections.abc import Mapping
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, TextIO, TypeGuard

import structlog

from hydropulse.contracts.errors import BackendInitError, BackendSendError

if TYPE_CHECKING:
    from hydropulse.contracts.events import LogData, MetricData, TraceData
    from hydropulse.core.config import TelemetrySettings

logger = structlog.get_logger(__name__)


def _is_valid_format(v: str) -> TypeGuard[Literal["json", "pretty"]]:
    return v in {"json", "pretty"}


def _is_valid_output(v: str) -> TypeGuard[Literal["stdout", "stderr"]]:
    return v in {"stdout", "stderr"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(item) for item in value]
    return value


class ConsoleBackend:
    """Write telemetry to stdout/stderr.

    Supports two output formats:
    - json: One JSON object per line (for machine processing)
    - pretty: Human-readable line with timestamp and record type

    Configuration options (settings.backend.connections["console"]):
        format: Output format - "json" (default) or "pretty"
        output: Output stream - "stdout" (default) or "stderr"

    Example configuration:
        backend:
          mode: console
          connections:
            console:
              format: pretty
              output: stderr
    """

    _name = "console"

    _VALID_FORMATS: frozenset[str] = frozenset({"json", "pretty"})
    _VALID_OUTPUTS: frozenset[str] = frozenset({"stdout", "stderr"})

    def __init__(self) -> None:
        """Initialize unconfigured backend."""
        self._format: Literal["json", "pretty"] = "json"
        self._output: Literal["stdout", "stderr"] = "stdout"
        self._stream: TextIO = sys.stdout
        self._service_name: str | None = None
        self._open_spans: dict[str, TraceData] = {}
        self._initialized = False
        self._failed = False

    @property
    def name(self) -> str:
        return self._name

    async def initialize(self, settings: TelemetrySettings) -> None:
        """Read console options from settings.backend.connections.

        Raises:
            BackendInitError: If configuration values are invalid
        """
        options = settings.backend.connections.get(self._name, {})

        format_value = options.get("format", "json")
        if not isinstance(format_value, str):
            raise BackendInitError(self._name, f"'format' must be a string, got {type(format_value).__name__}")
        if _is_valid_format(format_value):
            self._format = format_value
        else:
            raise BackendInitError(
                self._name,
                f"Invalid format '{format_value}'. Must be one of: {', '.join(sorted(self._VALID_FORMATS))}",
            )

        output_value = options.get("output", "stdout")
        if not isinstance(output_value, str):
            raise BackendInitError(self._name, f"'output' must be a string, got {type(output_value).__name__}")
        if _is_valid_output(output_value):
            self._output = output_value
        else:
            raise BackendInitError(
                self._name,
                f"Invalid output '{output_value}'. Must be one of: {', '.join(sorted(self._VALID_OUTPUTS))}",
            )
        self._stream = sys.stdout if self._output == "stdout" else sys.stderr
        self._service_name = settings.service_name
        self._initialized = True
        self._failed = False

        logger.debug("Console backend initialized", format=self._format, output=self._output)

    async def record_metric(self, metric: MetricData) -> None:
        self._write("metric", asdict(metric), summary=f"{metric.name}={metric.value}")

    async def start_trace(self, span: TraceData) -> str:
        span_id = uuid.uuid4().hex[:16]
        self._open_spans[span_id] = span
        record = asdict(span)
        record["span_id"] = span_id
        self._write("span_start", record, summary=f"{span.operation_name} [{span_id}]")
        return span_id

    async def end_trace(self, span_id: str, attributes: Mapping[str, Any] | None = None) -> None:
        span = self._open_spans.pop(span_id, None)
        if span is None:
            return
        record = {"span_id": span_id, "operation_name": span.operation_name, "attributes": dict(attributes or {})}
        self._write("span_end", record, summary=f"{span.operation_name} [{span_id}]")

    async def record_log(self, log: LogData) -> None:
        self._write("log", asdict(log), summary=f"{log.level.value.upper()} {log.message}")

    def _write(self, record_type: str, record: dict[str, Any], *, summary: str) -> None:
        if not self._initialized:
            raise BackendSendError(self._name, "console backend not initialized")
        record["service"] = self._service_name
        try:
            if self._format == "json":
                line = json.dumps({"type": record_type, **_jsonable(record)}, default=str)
            else:
                timestamp = record.get("timestamp") or record.get("start_time")
                stamp = timestamp.isoformat() if isinstance(timestamp, datetime) else "-"
                line = f"[{stamp}] {record_type}: {summary}"
            print(line, file=self._stream)
        except (OSError, ValueError, TypeError) as e:
            self._failed = True
            raise BackendSendError(self._name, f"failed to write {record_type}: {e}") from e

    async def flush(self) -> None:
        try:
            self._stream.flush()
        except (OSError, ValueError) as e:
            logger.warning("Failed to flush console stream", backend=self._name, error=str(e))

    async def shutdown(self) -> None:
        """Release resources.

        The console backend does not own stdout/stderr, so only the span
        table is cleared.
        """
        self._open_spans.clear()
        self._initialized = False

    def is_healthy(self) -> bool:
        return self._initialized and not self._failed
