# tests/unit/telemetry/test_event_queue.py
"""Tests for EventQueue ring buffer behavior."""

import pytest
from structlog.testing import capture_logs

from hydropulse.contracts.events import MetricData, TelemetryEvent
from hydropulse.telemetry.queue import EventQueue


def _event(n: int) -> TelemetryEvent:
    return TelemetryEvent.metric(MetricData(name=f"metric_{n}", value=float(n)))


class TestEventQueueBasics:
    def test_empty_queue(self) -> None:
        queue = EventQueue(max_size=3)
        assert len(queue) == 0
        assert queue.drain() == []
        assert queue.dropped_count == 0

    def test_drain_is_fifo_and_empties(self) -> None:
        queue = EventQueue(max_size=10)
        events = [_event(i) for i in range(4)]
        for event in events:
            queue.append(event)

        assert queue.drain() == events
        assert len(queue) == 0

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError, match="max_size must be >= 1"):
            EventQueue(max_size=0)


class TestEventQueueOverflow:
    def test_overflow_keeps_newest(self) -> None:
        """max=3, insert 4 events: queue retains events 2, 3, 4."""
        queue = EventQueue(max_size=3)
        events = [_event(i) for i in range(1, 5)]
        for event in events:
            queue.append(event)

        assert len(queue) == 3
        assert queue.dropped_count == 1
        assert [e.data.name for e in queue.drain()] == ["metric_2", "metric_3", "metric_4"]

    def test_length_pinned_at_max(self) -> None:
        queue = EventQueue(max_size=5)
        for i in range(50):
            queue.append(_event(i))
            assert len(queue) <= 5
        assert queue.dropped_count == 45

    def test_aggregate_overflow_logging(self) -> None:
        """One warning per 100 drops, not one per dropped event."""
        queue = EventQueue(max_size=1)
        queue.append(_event(0))
        with capture_logs() as logs:
            for i in range(250):
                queue.append(_event(i))

        warnings = [entry for entry in logs if entry["log_level"] == "warning"]
        assert len(warnings) == 2
        assert warnings[0]["dropped_total"] == 100
        assert warnings[1]["dropped_total"] == 200
        assert warnings[0]["max_queue_size"] == 1
