# src/hydropulse/contracts/errors.py
"""Exception taxonomy for the telemetry core.

Only two kinds of error ever reach the instrumentation call site:

- TelemetryConfigError: invalid settings, raised at construction
- BothBackendsFailedError: neither backend could be initialized

Everything else (BackendSendError, queue overflow, retry exhaustion) is
recovered or logged inside the orchestrator.
"""


class HydropulseError(Exception):
    """Base class for all hydropulse errors."""


class TelemetryConfigError(HydropulseError, ValueError):
    """Raised when telemetry settings are missing or invalid.

    Wraps pydantic's ValidationError so callers only need to catch one
    hydropulse type. Fatal at construction - no backend is touched.
    """


class BackendError(HydropulseError):
    """Base class for errors raised by (or about) a telemetry backend.

    Attributes:
        backend_name: Registry name of the backend that failed
        message: Human-readable error description
    """

    def __init__(self, backend_name: str, message: str) -> None:
        self.backend_name = backend_name
        self.message = message
        super().__init__(f"Backend '{backend_name}' failed: {message}")


class BackendInitError(BackendError):
    """Raised by initialize() when backend-specific settings are missing or malformed."""


class BackendSendError(BackendError):
    """Raised by record/start/end operations on transport or encoding failure."""


class BackendRegistryError(BackendError):
    """Raised when backend discovery or name resolution fails."""


class BothBackendsFailedError(HydropulseError):
    """Raised when primary and fallback backends both fail to initialize.

    The orchestrator is left uninitialized. Initialization is not retried
    automatically.

    Attributes:
        primary_error: Exception raised by the primary backend
        fallback_error: Exception raised by the fallback backend
    """

    def __init__(self, primary_error: BaseException, fallback_error: BaseException) -> None:
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(f"Both primary and fallback backends failed to initialize (primary: {primary_error}; fallback: {fallback_error})")
