# src/hydropulse/contracts/enums.py
"""Status codes, modes, and kinds shared across subsystem boundaries.

Every value here is a StrEnum so it compares equal to (and serializes as)
its wire string, e.g. ``CircuitState.HALF_OPEN == "half-open"``.
"""

from enum import StrEnum


class CircuitState(StrEnum):
    """State of the orchestrator's circuit breaker.

    Values:
        CLOSED: All requests allowed (default)
        OPEN: Requests blocked until the cool-down elapses
        HALF_OPEN: A single probe request is allowed
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class BackendRole(StrEnum):
    """Which of the two configured backends is currently active."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class EventKind(StrEnum):
    """Discriminator for the TelemetryEvent envelope."""

    METRIC = "metric"
    TRACE = "trace"
    LOG = "log"


class SpanStatus(StrEnum):
    """Outcome recorded on a trace span."""

    OK = "ok"
    ERROR = "error"
    TIMEOUT = "timeout"


class LogLevel(StrEnum):
    """Severity of a structured log event."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Environment(StrEnum):
    """Deployment environment the instrumented service runs in."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


# Backend selection mode that picks the primary from the declared connections.
AUTO_BACKEND_MODE = "auto"


class SystemCondition(StrEnum):
    """Overall condition reported by the orchestrator's status summary.

    Checked in this order; the first that applies wins.

    Values:
        UNHEALTHY: Not initialized, or the current backend reports unhealthy
        CIRCUIT_OPEN: Circuit breaker is open
        HIGH_QUEUE: Queue holds more than 80% of batching.max_queue_size
        FLOWING: None of the above
    """

    UNHEALTHY = "unhealthy"
    CIRCUIT_OPEN = "circuit-open"
    HIGH_QUEUE = "high-queue"
    FLOWING = "flowing"
