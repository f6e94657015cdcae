# src/hydropulse/core/clock.py
"""Clock abstraction for testable cool-down logic.

The circuit breaker measures its cool-down window against a Clock rather
than calling time.monotonic() directly, so tests can step through
closed -> open -> half-open transitions without sleeping.

Production code uses SystemClock (the default).
Tests inject MockClock to control time advancement.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract monotonic clock.

    Implementations:
    - SystemClock: Uses time.monotonic() (production)
    - MockClock: Returns controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds.

        Must never go backwards. Corresponds to time.monotonic().
        """
        ...


class SystemClock:
    """Production clock using time.monotonic()."""

    def monotonic(self) -> float:
        """Return system monotonic time."""
        return time.monotonic()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout_ms=1000, clock=clock)

        breaker.record_failure()  # opens at t=0
        clock.advance(0.5)
        assert not breaker.should_attempt_request()

        clock.advance(0.5)  # t=1.0, cool-down elapsed
        assert breaker.should_attempt_request()  # half-open probe
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start

    def monotonic(self) -> float:
        """Return current mock time."""
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
