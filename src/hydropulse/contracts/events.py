# src/hydropulse/contracts/events.py
"""Telemetry data records that cross the facade <-> orchestrator <-> backend boundary.

Payload records (MetricData, TraceData, LogData) are immutable. The
sanitizer produces redacted copies with dataclasses.replace() rather than
mutating them in place.

TelemetryEvent is the envelope stored in the event queue. It is the one
mutable record here: the retry scheduler increments retry_count on it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from hydropulse.contracts.enums import BackendRole, CircuitState, EventKind, LogLevel, SpanStatus, SystemCondition


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True, slots=True)
class MetricData:
    """A single metric observation.

    Attributes:
        name: Metric name (e.g. "http_requests_total")
        value: Numeric value
        unit: Unit hint ("count", "gauge", "histogram", "milliseconds", ...)
        attributes: Dimension labels (string -> scalar)
        timestamp: When the observation was made
    """

    name: str
    value: float
    unit: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class TraceData:
    """A traced operation.

    span_id is assigned by the active backend on start_trace(); callers
    leave it unset. end_time is only set for spans that are recorded after
    they completed.
    """

    operation_name: str
    start_time: datetime = field(default_factory=utc_now)
    span_id: str | None = None
    trace_id: str | None = None
    parent_span_id: str | None = None
    end_time: datetime | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    status: SpanStatus = SpanStatus.OK
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class LogData:
    """A structured log event, optionally correlated with a trace."""

    level: LogLevel
    message: str
    attributes: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    trace_id: str | None = None
    span_id: str | None = None


# =============================================================================
# Envelope
# =============================================================================


@dataclass(slots=True)
class TelemetryEvent:
    """Unit of work held by the event queue and the retry scheduler.

    Attributes:
        kind: Which payload type ``data`` holds
        data: The sanitized payload
        timestamp: When the event was first recorded (kept across retries)
        retry_count: Number of retry attempts scheduled so far
        event_id: Stable identity used to key retry timers
    """

    kind: EventKind
    data: MetricData | TraceData | LogData
    timestamp: datetime = field(default_factory=utc_now)
    retry_count: int = 0
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def metric(cls, data: MetricData) -> TelemetryEvent:
        return cls(kind=EventKind.METRIC, data=data)

    @classmethod
    def trace(cls, data: TraceData) -> TelemetryEvent:
        return cls(kind=EventKind.TRACE, data=data)

    @classmethod
    def log(cls, data: LogData) -> TelemetryEvent:
        return cls(kind=EventKind.LOG, data=data)


# =============================================================================
# Read-only views
# =============================================================================


@dataclass(frozen=True, slots=True)
class CircuitBreakerSnapshot:
    """Point-in-time copy of circuit breaker state.

    Times are monotonic clock readings in seconds, None when not applicable.
    """

    state: CircuitState
    failure_count: int
    last_failure_time: float | None = None
    next_attempt_time: float | None = None


@dataclass(frozen=True, slots=True)
class HealthSnapshot:
    """Derived health view of the orchestrator. Computed on demand, never stored."""

    healthy: bool
    current_backend: BackendRole
    queue_depth: int
    circuit_breaker_state: CircuitState

    def as_dict(self) -> dict[str, Any]:
        """Render in the external health-status shape."""
        return {
            "healthy": self.healthy,
            "currentBackend": self.current_backend.value,
            "queueDepth": self.queue_depth,
            "circuitBreakerState": self.circuit_breaker_state.value,
        }


_CONDITION_MESSAGES: dict[SystemCondition, str] = {
    SystemCondition.UNHEALTHY: "System experiencing issues",
    SystemCondition.CIRCUIT_OPEN: "Circuit breaker active - monitoring",
    SystemCondition.HIGH_QUEUE: "High queue volume - processing",
    SystemCondition.FLOWING: "All systems flowing smoothly",
}


def flow_label(metrics_per_second: float) -> str:
    """Bucket a metric rate into optimal / good / normal / low."""
    if metrics_per_second > 500:
        return "optimal"
    if metrics_per_second > 100:
        return "good"
    if metrics_per_second > 10:
        return "normal"
    return "low"


@dataclass(frozen=True, slots=True)
class StatusSummary:
    """Human-oriented status view built from the health snapshot and counters.

    Attributes:
        condition: First matching SystemCondition
        health: The HealthSnapshot the condition was derived from
        metrics_per_second: record_metric() calls per second since construction
        uptime_s: Seconds since construction
    """

    condition: SystemCondition
    health: HealthSnapshot
    metrics_per_second: float
    uptime_s: float

    @property
    def message(self) -> str:
        return _CONDITION_MESSAGES[self.condition]

    @property
    def flow(self) -> str:
        return flow_label(self.metrics_per_second)

    def render(self, service_name: str, service_version: str) -> str:
        """Multi-line status text for logs or a CLI."""
        return "\n".join(
            [
                f"{service_name} v{service_version} (up {int(self.uptime_s)}s)",
                f"Backend: {self.health.current_backend.value} "
                f"(circuit {self.health.circuit_breaker_state.value}, queue {self.health.queue_depth})",
                f"Flow: {self.flow} ({self.metrics_per_second:.1f} metrics/s)",
                f"Status: {self.message}",
            ]
        )
