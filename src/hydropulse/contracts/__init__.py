"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core,
backends, or telemetry. Settings classes are NOT re-exported here - import
them from hydropulse.core.config.

Import patterns:
    from hydropulse.contracts import MetricData, LogLevel, BackendInitError
    from hydropulse.core.config import TelemetrySettings
"""

from hydropulse.contracts.enums import (
    AUTO_BACKEND_MODE,
    BackendRole,
    CircuitState,
    Environment,
    EventKind,
    LogLevel,
    SpanStatus,
    SystemCondition,
)
from hydropulse.contracts.errors import (
    BackendError,
    BackendInitError,
    BackendRegistryError,
    BackendSendError,
    BothBackendsFailedError,
    HydropulseError,
    TelemetryConfigError,
)
from hydropulse.contracts.events import (
    CircuitBreakerSnapshot,
    HealthSnapshot,
    LogData,
    MetricData,
    StatusSummary,
    TelemetryEvent,
    TraceData,
    utc_now,
)

__all__ = [
    "AUTO_BACKEND_MODE",
    "BackendError",
    "BackendInitError",
    "BackendRegistryError",
    "BackendRole",
    "BackendSendError",
    "BothBackendsFailedError",
    "CircuitBreakerSnapshot",
    "CircuitState",
    "Environment",
    "EventKind",
    "HealthSnapshot",
    "HydropulseError",
    "LogData",
    "LogLevel",
    "MetricData",
    "SpanStatus",
    "StatusSummary",
    "SystemCondition",
    "TelemetryConfigError",
    "TelemetryEvent",
    "TraceData",
    "utc_now",
]
