# src/hydropulse/telemetry/queue.py
"""Bounded FIFO for events that could not be delivered immediately.

Holds events while the circuit breaker is blocking. When full, the oldest
event is evicted so the newest observations survive an outage.

Key design decisions:
- Ring buffer via deque(maxlen=N): automatic oldest-first eviction
- Overflow counted by checking was_full BEFORE append (deque evicts during)
- Aggregate logging every 100 drops, not one warning per dropped event
"""

from collections import deque

import structlog

from hydropulse.contracts.events import TelemetryEvent

logger = structlog.get_logger(__name__)


class EventQueue:
    """Ring buffer of TelemetryEvent envelopes that drops the oldest on overflow.

    NOT thread-safe. The orchestrator only touches it from its event loop.

    Attributes:
        dropped_count: Total number of events evicted due to overflow.

    Example:
        queue = EventQueue(max_size=3)
        for event in events[:4]:
            queue.append(event)
        assert [e.data for e in queue.drain()] == [events[1].data, events[2].data, events[3].data]
    """

    _LOG_INTERVAL = 100

    def __init__(self, max_size: int = 1000) -> None:
        """Initialize the queue.

        Args:
            max_size: Maximum number of queued events. Defaults to 1000.

        Raises:
            ValueError: If max_size < 1.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._events: deque[TelemetryEvent] = deque(maxlen=max_size)
        self._dropped_count = 0
        self._last_logged_drop_count = 0

    @property
    def max_size(self) -> int:
        # maxlen is always set in __init__
        return self._events.maxlen  # type: ignore[return-value]

    def append(self, event: TelemetryEvent) -> None:
        """Queue an event, evicting the oldest one if the queue is full."""
        was_full = len(self._events) == self._events.maxlen
        self._events.append(event)
        if was_full:
            self._dropped_count += 1
            if self._dropped_count - self._last_logged_drop_count >= self._LOG_INTERVAL:
                logger.warning(
                    "Telemetry queue overflow - oldest events dropped",
                    dropped_since_last_log=self._dropped_count - self._last_logged_drop_count,
                    dropped_total=self._dropped_count,
                    max_queue_size=self._events.maxlen,
                )
                self._last_logged_drop_count = self._dropped_count

    def drain(self) -> list[TelemetryEvent]:
        """Remove and return every queued event, oldest first."""
        events = list(self._events)
        self._events.clear()
        return events

    @property
    def dropped_count(self) -> int:
        """Number of events evicted due to overflow."""
        return self._dropped_count

    def __len__(self) -> int:
        return len(self._events)
