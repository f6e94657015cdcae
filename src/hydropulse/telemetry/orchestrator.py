# src/hydropulse/telemetry/orchestrator.py
"""TelemetryOrchestrator routes instrumentation calls to pluggable backends.

The orchestrator is the central hub of the telemetry core:
1. Accepts metrics, spans and logs from the facade services
2. Samples metrics and trace starts, then redacts PII
3. Gates delivery through a single circuit breaker
4. Delivers to the current backend (primary, or fallback after a switch)
5. Queues events while the breaker is blocking and retries failed events
   with exponential backoff
6. Exposes a health snapshot for monitoring

Design principles:
- Instrumentation calls never raise for delivery problems. Only invalid
  settings (TelemetryConfigError) and a total initialization failure
  (BothBackendsFailedError) reach the caller.
- No automatic switch back to the primary. Only a fresh initialize() cycle
  resets backend selection.
- Events that fail while the queue is being drained go to the retry path,
  never back into the queue, so one failing event cannot block newer ones.

Concurrency:
    Single asyncio event loop. Every breaker check and the mutation that
    depends on it happen without an intervening await. Backend calls may
    interleave at their await points.
"""

from __future__ import annotations

import asyncio
import random
import uuid
from collections.abc import Mapping
from dataclasses import replace
from types import TracebackType
from typing import Any

import structlog

from hydropulse.backends.protocols import BackendProtocol
from hydropulse.contracts.enums import BackendRole, CircuitState, SystemCondition
from hydropulse.contracts.errors import BothBackendsFailedError
from hydropulse.contracts.events import (
    HealthSnapshot,
    LogData,
    MetricData,
    StatusSummary,
    TelemetryEvent,
    TraceData,
    utc_now,
)
from hydropulse.core.clock import DEFAULT_CLOCK, Clock
from hydropulse.core.config import TelemetrySettings, load_settings
from hydropulse.telemetry.circuit_breaker import CircuitBreaker
from hydropulse.telemetry.queue import EventQueue
from hydropulse.telemetry.retry import RetryScheduler
from hydropulse.telemetry.sampling import RandomSource, should_sample
from hydropulse.telemetry.sanitizer import Sanitizer
from hydropulse.telemetry.services import LogsService, MetricsService, TracesService

logger = structlog.get_logger(__name__)

PLACEHOLDER_SPAN_PREFIX = "placeholder-"


def is_placeholder_span(span_id: str) -> bool:
    """True for synthetic span ids that no backend has ever seen."""
    return span_id.startswith(PLACEHOLDER_SPAN_PREFIX)


def _placeholder_span_id() -> str:
    return f"{PLACEHOLDER_SPAN_PREFIX}{uuid.uuid4().hex}"


class TelemetryOrchestrator:
    """Owns a primary and a fallback backend and decides which one is current.

    Construct one per process and pass it to whatever needs to record
    telemetry. The metrics, traces and logs attributes are convenience
    facades bound to this orchestrator.

    Calls made before initialize() completes (or after shutdown()) are
    queued rather than delivered; start_trace() returns a placeholder id.

    Example:
        >>> orchestrator = TelemetryOrchestrator(
        ...     {"service_name": "checkout", "service_version": "1.4.2"},
        ...     primary=OtlpBackend(),
        ...     fallback=ConsoleBackend(),
        ... )
        >>> async with orchestrator:
        ...     await orchestrator.metrics.counter("orders_total")
    """

    def __init__(
        self,
        settings: TelemetrySettings | Mapping[str, Any],
        primary: BackendProtocol,
        fallback: BackendProtocol,
        *,
        clock: Clock | None = None,
        rng: RandomSource | None = None,
    ) -> None:
        """Validate settings and wire up the delivery pipeline.

        No backend is touched until initialize().

        Args:
            settings: TelemetrySettings or a raw mapping of settings fields
            primary: Backend tried first
            fallback: Backend switched to when the primary fails
            clock: Time source for the circuit breaker (tests inject MockClock)
            rng: Uniform [0, 1) source for sampling decisions

        Raises:
            TelemetryConfigError: If settings are missing or invalid
        """
        self._settings = load_settings(settings)
        self._primary = primary
        self._fallback = fallback
        self._current: BackendProtocol = primary
        self._current_role = BackendRole.PRIMARY
        self._initialized = False
        self._closing = False
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._created_at = self._clock.monotonic()

        breaker_settings = self._settings.circuit_breaker
        self._breaker = CircuitBreaker(
            breaker_settings.failure_threshold,
            breaker_settings.reset_timeout_ms,
            clock=self._clock,
        )
        self._queue = EventQueue(self._settings.batching.max_queue_size)
        self._retries = RetryScheduler()
        self._sanitizer = Sanitizer(self._settings.sanitization)
        self._rng: RandomSource = rng if rng is not None else random.random

        # Health metrics
        self._events_sent = 0
        self._metrics_recorded = 0
        self._events_sampled_out = 0
        self._retries_scheduled = 0
        self._retries_exhausted = 0

        self.metrics = MetricsService(self)
        self.traces = TracesService(self)
        self.logs = LogsService(self)

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def settings(self) -> TelemetrySettings:
        return self._settings

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def current_backend(self) -> BackendProtocol:
        return self._current

    @property
    def current_role(self) -> BackendRole:
        return self._current_role

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def pending_retries(self) -> int:
        return self._retries.pending

    def is_placeholder_span(self, span_id: str) -> bool:
        return is_placeholder_span(span_id)

    def get_health_status(self) -> HealthSnapshot:
        """Derive the health snapshot. Pure read, no side effects."""
        return HealthSnapshot(
            healthy=self._initialized and self._current.is_healthy(),
            current_backend=self._current_role,
            queue_depth=len(self._queue),
            circuit_breaker_state=self._breaker.state,
        )

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Counters for operational monitoring.

        - events_sent: Delivered to a backend (including replays and retries)
        - metrics_recorded: record_metric() calls, before sampling
        - events_sampled_out: Discarded by sampling before delivery
        - events_dropped_on_overflow: Evicted from the full queue
        - retries_scheduled / retries_exhausted: Retry path activity
        - queue_depth / pending_retries: Current backlog
        """
        return {
            "events_sent": self._events_sent,
            "metrics_recorded": self._metrics_recorded,
            "events_sampled_out": self._events_sampled_out,
            "events_dropped_on_overflow": self._queue.dropped_count,
            "retries_scheduled": self._retries_scheduled,
            "retries_exhausted": self._retries_exhausted,
            "queue_depth": len(self._queue),
            "pending_retries": self._retries.pending,
            "circuit_breaker": self._breaker.snapshot(),
        }

    def status_summary(self) -> StatusSummary:
        """Summarize health, backlog and metric flow. Pure read, no side effects.

        The condition is the first that applies: unhealthy, circuit open,
        queue above 80% of batching.max_queue_size, else flowing.
        """
        health = self.get_health_status()
        if not health.healthy:
            condition = SystemCondition.UNHEALTHY
        elif health.circuit_breaker_state is CircuitState.OPEN:
            condition = SystemCondition.CIRCUIT_OPEN
        elif health.queue_depth > self._settings.batching.max_queue_size * 0.8:
            condition = SystemCondition.HIGH_QUEUE
        else:
            condition = SystemCondition.FLOWING

        uptime_s = self._clock.monotonic() - self._created_at
        rate = self._metrics_recorded / uptime_s if uptime_s > 0 else 0.0
        return StatusSummary(condition=condition, health=health, metrics_per_second=rate, uptime_s=uptime_s)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Initialize the primary backend, falling back if it fails.

        Idempotent once initialized. On success, anything queued before
        initialization is drained to the chosen backend.

        Raises:
            BothBackendsFailedError: If neither backend initializes. The
                orchestrator stays uninitialized and the breaker is opened.
        """
        if self._initialized:
            return

        self._closing = False
        self._current = self._primary
        self._current_role = BackendRole.PRIMARY
        try:
            await self._primary.initialize(self._settings)
        except Exception as primary_error:
            logger.warning(
                "Primary backend failed to initialize, trying fallback",
                backend=self._primary.name,
                error=str(primary_error),
                error_type=type(primary_error).__name__,
            )
            self._current = self._fallback
            self._current_role = BackendRole.FALLBACK
            try:
                await self._fallback.initialize(self._settings)
            except Exception as fallback_error:
                self._breaker.trip()
                logger.error(
                    "Fallback backend also failed to initialize",
                    primary=self._primary.name,
                    fallback=self._fallback.name,
                    error=str(fallback_error),
                    error_type=type(fallback_error).__name__,
                )
                raise BothBackendsFailedError(primary_error, fallback_error) from fallback_error

        self._initialized = True
        self._breaker.reset()
        self._log_transition(
            "Telemetry initialized",
            backend=self._current.name,
            role=self._current_role.value,
            service=self._settings.service_name,
        )
        await self.process_queued_events()

    async def flush(self) -> None:
        """Drain the queue, then flush the current backend.

        While uninitialized the queue is kept for the next initialize().
        """
        if self._initialized:
            await self.process_queued_events()
        try:
            await self._current.flush()
        except Exception as e:
            logger.warning("Backend flush failed", backend=self._current.name, error=str(e))

    async def shutdown(self) -> None:
        """Cancel retries, flush, shut the current backend down.

        Safe to call more than once. Retry timers are cancelled before this
        returns, including a retry that is mid-delivery, and no new ones are
        armed once shutdown has begun. Events that fail during the final
        flush are dropped; delivery is not durable across shutdown.
        """
        self._closing = True
        await self.traces.wait_pending()
        await self.logs.flush_buffer()
        await self._retries.cancel_all()
        await self.flush()
        try:
            await self._current.shutdown()
        except Exception as e:
            logger.warning("Backend shutdown failed", backend=self._current.name, error=str(e))
        was_initialized = self._initialized
        self._initialized = False
        if was_initialized:
            self._log_transition("Telemetry shut down", **self.health_metrics)

    async def __aenter__(self) -> TelemetryOrchestrator:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # =========================================================================
    # Recording API
    # =========================================================================

    async def record_metric(self, metric: MetricData) -> None:
        """Sample, sanitize and deliver a metric. Never raises for delivery problems."""
        self._metrics_recorded += 1
        if not self._sample(metric.name, metric.attributes):
            return
        await self.process_event(TelemetryEvent.metric(self._sanitizer.sanitize(metric)))

    async def record_log(self, log: LogData) -> None:
        """Sanitize and deliver a log event. Logs are never sampled."""
        await self.process_event(TelemetryEvent.log(self._sanitizer.sanitize(log)))

    async def record_span(self, trace: TraceData) -> None:
        """Deliver a span that has already completed.

        Unlike start_trace(), completed spans are queued and retried like
        metrics and logs. A span without end_time is closed now.
        """
        if not self._sample(trace.operation_name, trace.attributes):
            return
        if trace.end_time is None:
            trace = replace(trace, end_time=utc_now())
        await self.process_event(TelemetryEvent.trace(self._sanitizer.sanitize(trace)))

    async def start_trace(self, trace: TraceData) -> str:
        """Start a span on the current backend and return its span id.

        Returns a placeholder id (see is_placeholder_span) when the span is
        sampled out, the orchestrator is uninitialized, the breaker is
        blocking, or delivery fails on every backend. Trace starts are
        never queued.
        """
        if not self._sample(trace.operation_name, trace.attributes):
            return _placeholder_span_id()
        trace = self._sanitizer.sanitize(trace)

        if not self._initialized or not self._breaker.should_attempt_request():
            self._log_transition(
                "Trace start blocked, returning placeholder span",
                operation_name=trace.operation_name,
                initialized=self._initialized,
                circuit_breaker_state=self._breaker.state.value,
            )
            return _placeholder_span_id()

        try:
            span_id = await self._current.start_trace(trace)
        except asyncio.CancelledError:
            self._breaker.release_half_open_slot()
            raise
        except Exception as e:
            self._breaker.record_failure()
            logger.warning(
                "Backend failed to start trace",
                backend=self._current.name,
                operation_name=trace.operation_name,
                error=str(e),
            )
            if self._current_role is BackendRole.PRIMARY and await self._switch_to_fallback():
                try:
                    return await self._current.start_trace(trace)
                except Exception as resend_error:
                    self._breaker.record_failure()
                    logger.warning(
                        "Fallback backend failed to start trace",
                        backend=self._current.name,
                        operation_name=trace.operation_name,
                        error=str(resend_error),
                    )
            return _placeholder_span_id()

        self._breaker.record_success()
        return span_id

    async def end_trace(self, span_id: str, attributes: Mapping[str, Any] | None = None) -> None:
        """Finish a span. Best-effort: failures are logged, never raised.

        Ending a placeholder span is a guaranteed no-op: nothing is sent to
        any backend and the breaker is not consulted.
        """
        if is_placeholder_span(span_id):
            return
        if not self._initialized:
            logger.debug("Trace end dropped, telemetry not initialized", span_id=span_id)
            return
        clean_attributes = self._sanitizer.sanitize(dict(attributes)) if attributes else None

        if not self._breaker.should_attempt_request():
            logger.debug("Trace end dropped, circuit breaker open", span_id=span_id)
            return

        try:
            await self._current.end_trace(span_id, clean_attributes)
        except asyncio.CancelledError:
            self._breaker.release_half_open_slot()
            raise
        except Exception as e:
            self._breaker.record_failure()
            logger.warning(
                "Backend failed to end trace",
                backend=self._current.name,
                span_id=span_id,
                error=str(e),
            )
        else:
            self._breaker.record_success()

    # =========================================================================
    # Delivery pipeline
    # =========================================================================

    async def process_event(self, event: TelemetryEvent) -> None:
        """Deliver one event, or queue / retry it.

        1. Breaker blocking (or not initialized): queue and return
        2. Otherwise send to the current backend
        3. Success: report to the breaker
        4. Failure: report to the breaker, try the fallback switch, else retry
        """
        if not self._initialized or not self._breaker.should_attempt_request():
            self._queue.append(event)
            self._log_transition(
                "Event queued",
                event_kind=event.kind.value,
                queue_depth=len(self._queue),
                circuit_breaker_state=self._breaker.state.value,
            )
            return

        try:
            await self._send_event(event)
        except asyncio.CancelledError:
            self._breaker.release_half_open_slot()
            raise
        except Exception as e:
            self._breaker.record_failure()
            await self._handle_backend_error(e, event)
        else:
            self._breaker.record_success()

    def schedule_retry(self, event: TelemetryEvent) -> None:
        """Arm a backoff timer that feeds the event back into process_event().

        Drops the event once it has used up retry.max_attempts, or when
        shutdown has begun.
        """
        if self._closing:
            logger.warning(
                "Retry not scheduled, telemetry shutting down",
                event_kind=event.kind.value,
                event_id=event.event_id,
            )
            return
        retry_settings = self._settings.retry
        event.retry_count += 1
        if event.retry_count > retry_settings.max_attempts:
            self._retries_exhausted += 1
            logger.warning(
                "Event exceeded max retry attempts, dropping",
                event_kind=event.kind.value,
                event_id=event.event_id,
                max_attempts=retry_settings.max_attempts,
            )
            return

        delay_s = retry_settings.delay_seconds(event.retry_count)

        async def _retry() -> None:
            await self.process_event(event)

        self._retries.arm(event.event_id, delay_s, _retry)
        self._retries_scheduled += 1
        self._log_transition(
            "Event scheduled for retry",
            event_kind=event.kind.value,
            event_id=event.event_id,
            retry_count=event.retry_count,
            delay_s=delay_s,
        )

    async def process_queued_events(self) -> None:
        """Drain the queue to the current backend, oldest first.

        Events that fail here go to the retry path instead of back into
        the queue.
        """
        events = self._queue.drain()
        if not events:
            return
        self._log_transition("Processing queued events", count=len(events), backend=self._current.name)
        for event in events:
            try:
                await self._send_event(event)
            except Exception as e:
                self._breaker.record_failure()
                logger.warning(
                    "Failed to deliver queued event",
                    backend=self._current.name,
                    event_kind=event.kind.value,
                    error=str(e),
                )
                self.schedule_retry(event)
            else:
                self._breaker.record_success()

    async def _handle_backend_error(self, error: Exception, event: TelemetryEvent) -> None:
        logger.warning(
            "Backend send failed",
            backend=self._current.name,
            role=self._current_role.value,
            event_kind=event.kind.value,
            retry_count=event.retry_count,
            error=str(error),
            error_type=type(error).__name__,
        )
        if self._current_role is BackendRole.PRIMARY and await self._switch_to_fallback():
            try:
                await self._send_event(event)
                return
            except Exception as resend_error:
                self._breaker.record_failure()
                logger.warning(
                    "Resend to fallback backend failed",
                    backend=self._current.name,
                    event_kind=event.kind.value,
                    error=str(resend_error),
                )
        self.schedule_retry(event)

    async def _switch_to_fallback(self) -> bool:
        """Initialize the fallback and make it current.

        The current pointer only moves once the fallback has initialized,
        so a failed switch leaves the primary in place (and its breaker
        state untouched). Returns True if the switch happened.
        """
        try:
            await self._fallback.initialize(self._settings)
        except Exception as e:
            logger.warning(
                "Fallback backend failed to initialize, staying on primary",
                backend=self._fallback.name,
                error=str(e),
            )
            return False

        self._current = self._fallback
        self._current_role = BackendRole.FALLBACK
        self._breaker.reset()
        self._log_transition(
            "Switched to fallback backend",
            primary=self._primary.name,
            fallback=self._fallback.name,
        )
        await self.process_queued_events()
        return True

    async def _send_event(self, event: TelemetryEvent) -> None:
        match event.data:
            case MetricData() as metric:
                await self._current.record_metric(metric)
            case LogData() as log:
                await self._current.record_log(log)
            case TraceData(end_time=None) as span:
                logger.debug("Dropping trace start without end time", operation_name=span.operation_name)
                return
            case TraceData() as span:
                span_id = await self._current.start_trace(span)
                await self._current.end_trace(span_id, _end_attributes(span))
        self._events_sent += 1

    # =========================================================================
    # Helpers
    # =========================================================================

    def _sample(self, operation: str, attributes: Mapping[str, Any]) -> bool:
        keep = should_sample(
            self._settings.sampling,
            self._settings.service_name,
            operation,
            attributes,
            self._rng,
        )
        if not keep:
            self._events_sampled_out += 1
        return keep

    def _log_transition(self, event: str, **kwargs: Any) -> None:
        """Log an orchestrator state transition (info when settings.debug)."""
        if self._settings.debug:
            logger.info(event, **kwargs)
        else:
            logger.debug(event, **kwargs)


def _end_attributes(span: TraceData) -> dict[str, Any]:
    attributes: dict[str, Any] = {"status": span.status.value}
    if span.end_time is not None:
        attributes["duration_ms"] = (span.end_time - span.start_time).total_seconds() * 1000.0
    if span.error_message is not None:
        attributes["error_message"] = span.error_message
    return attributes
