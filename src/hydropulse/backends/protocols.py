# src/hydropulse/backends/protocols.py
"""Protocol definitions for telemetry backends.

Backends ship metrics, traces and logs to external observability platforms
(OTLP collectors, vendor SDKs, the console). The orchestrator depends on
this surface only - never on backend-specific types.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hydropulse.contracts.events import LogData, MetricData, TraceData
    from hydropulse.core.config import TelemetrySettings


@runtime_checkable
class BackendProtocol(Protocol):
    """Capability contract every telemetry backend must satisfy.

    Backends are discovered via pluggy hooks and selected by name in
    settings.backend. The orchestrator owns two instances (primary and
    fallback) and talks to whichever is current.

    Lifecycle:
        1. Discovery: hydropulse_get_backends hook returns backend classes
        2. Instantiation: the factory calls the class with no arguments
        3. initialize() called with the full TelemetrySettings
        4. Operation: record_metric / start_trace / end_trace / record_log
        5. Shutdown: flush() then shutdown()

    Error handling:
        - initialize() MUST raise BackendInitError on missing or malformed settings
        - record_metric(), record_log(), start_trace() raise BackendSendError
          on transport or encoding failure; the orchestrator recovers
        - end_trace() MUST tolerate unknown span ids silently
        - flush() MUST NOT raise - log and continue
        - shutdown() MUST be idempotent

    Concurrency:
        All coroutines run on the orchestrator's event loop. No two calls
        run in parallel, but calls may interleave at await points.
    """

    @property
    def name(self) -> str:
        """Backend name used in settings.backend (mode, fallback, connections keys)."""
        ...

    async def initialize(self, settings: "TelemetrySettings") -> None:
        """Establish connection / SDK setup.

        Backend-specific options live in settings.backend.connections[self.name].

        Raises:
            BackendInitError: If required options are missing or malformed
        """
        ...

    async def record_metric(self, metric: "MetricData") -> None:
        """Deliver a metric observation.

        Raises:
            BackendSendError: On transport or encoding failure
        """
        ...

    async def start_trace(self, span: "TraceData") -> str:
        """Start a span and return its backend-assigned span id.

        Raises:
            BackendSendError: On transport or encoding failure
        """
        ...

    async def end_trace(self, span_id: str, attributes: Mapping[str, Any] | None = None) -> None:
        """Finish a previously started span.

        Unknown span ids are ignored, not reported.

        Raises:
            BackendSendError: On transport or encoding failure
        """
        ...

    async def record_log(self, log: "LogData") -> None:
        """Deliver a structured log event.

        Raises:
            BackendSendError: On transport or encoding failure
        """
        ...

    async def flush(self) -> None:
        """Best-effort drain of backend-internal buffering. Never raises."""
        ...

    async def shutdown(self) -> None:
        """Release resources. Safe to call more than once."""
        ...

    def is_healthy(self) -> bool:
        """True only if initialized and no unrecovered failure has been observed."""
        ...
