# src/hydropulse/telemetry/circuit_breaker.py
"""Circuit breaker for the orchestrator's current backend.

Three-state machine:
- CLOSED: every request allowed; consecutive failures are counted
- OPEN: requests blocked until the cool-down window elapses
- HALF_OPEN: one probe request allowed; its outcome closes or re-opens

There is a single breaker per orchestrator, not one per backend. Switching
backends calls reset().

Concurrency:
    Not thread-safe and needs no lock under asyncio: every method runs to
    completion without awaiting. Callers must not await between
    should_attempt_request() and acting on its answer. A granted call that
    is cancelled before its outcome is known must call release_half_open_slot().
"""

from __future__ import annotations

import structlog

from hydropulse.contracts.enums import CircuitState
from hydropulse.contracts.events import CircuitBreakerSnapshot
from hydropulse.core.clock import DEFAULT_CLOCK, Clock

logger = structlog.get_logger(__name__)


class CircuitBreaker:
    """Consecutive-failure circuit breaker with a timed half-open probe.

    Example:
        breaker = CircuitBreaker(failure_threshold=5, reset_timeout_ms=60_000)

        if breaker.should_attempt_request():
            try:
                await backend.record_metric(metric)
            except BackendSendError:
                breaker.record_failure()
            else:
                breaker.record_success()
    """

    def __init__(
        self,
        failure_threshold: int,
        reset_timeout_ms: float,
        *,
        clock: Clock | None = None,
    ) -> None:
        """Initialize a closed breaker.

        Args:
            failure_threshold: Consecutive failures that open the breaker
            reset_timeout_ms: Cool-down before a half-open probe is allowed
            clock: Time source (defaults to the system monotonic clock)

        Raises:
            ValueError: If failure_threshold < 1 or reset_timeout_ms <= 0
        """
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {failure_threshold}")
        if reset_timeout_ms <= 0:
            raise ValueError(f"reset_timeout_ms must be > 0, got {reset_timeout_ms}")
        self._failure_threshold = failure_threshold
        self._reset_timeout_s = reset_timeout_ms / 1000.0
        self._clock = clock if clock is not None else DEFAULT_CLOCK

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._next_attempt_time: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def snapshot(self) -> CircuitBreakerSnapshot:
        """Return an immutable copy of the current state."""
        return CircuitBreakerSnapshot(
            state=self._state,
            failure_count=self._failure_count,
            last_failure_time=self._last_failure_time,
            next_attempt_time=self._next_attempt_time,
        )

    def should_attempt_request(self) -> bool:
        """Gate check before talking to the backend.

        While OPEN, returns False until the cool-down elapses; the first call
        after that moves to HALF_OPEN and returns True. Further calls return
        False until the probe's outcome is recorded, so exactly one probe
        runs per cool-down window.
        """
        if self._state is CircuitState.CLOSED:
            return True

        if self._state is CircuitState.OPEN:
            assert self._next_attempt_time is not None, "OPEN breaker without next_attempt_time"
            if self._clock.monotonic() < self._next_attempt_time:
                return False
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = True
            logger.debug("Circuit breaker half-open, allowing probe", failure_count=self._failure_count)
            return True

        # HALF_OPEN
        if self._probe_in_flight:
            return False
        self._probe_in_flight = True
        return True

    def record_success(self) -> None:
        """Report a successful backend call.

        A successful probe closes the breaker and clears the failure count.
        """
        if self._state is CircuitState.HALF_OPEN:
            logger.debug("Circuit breaker closed after successful probe")
            self._close()

    def record_failure(self) -> None:
        """Report a failed backend call.

        A failed probe re-opens the breaker with a fresh cool-down. While
        CLOSED, the breaker opens once failures reach the threshold.
        """
        self._failure_count += 1
        if self._state is CircuitState.HALF_OPEN or self._failure_count >= self._failure_threshold:
            self._open()

    def release_half_open_slot(self) -> None:
        """Give back a granted half-open slot whose outcome will never be recorded.

        Called when the granted call is cancelled. The breaker stays
        HALF_OPEN and the next request is granted instead.
        """
        if self._state is CircuitState.HALF_OPEN and self._probe_in_flight:
            self._probe_in_flight = False
            logger.debug("Circuit breaker half-open attempt abandoned", failure_count=self._failure_count)

    def trip(self) -> None:
        """Force the breaker OPEN regardless of the failure count.

        Used when no backend could be initialized at all.
        """
        self._failure_count += 1
        self._open()

    def reset(self) -> None:
        """Return to CLOSED with no recorded failures (used on backend switch)."""
        self._close()

    def _open(self) -> None:
        now = self._clock.monotonic()
        self._state = CircuitState.OPEN
        self._last_failure_time = now
        self._next_attempt_time = now + self._reset_timeout_s
        self._probe_in_flight = False
        logger.warning(
            "Circuit breaker opened",
            failure_count=self._failure_count,
            failure_threshold=self._failure_threshold,
            reset_timeout_s=self._reset_timeout_s,
        )

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._next_attempt_time = None
        self._probe_in_flight = False
