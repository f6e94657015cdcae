# src/hydropulse/telemetry/__init__.py
"""Telemetry orchestration engine.

Components:
- circuit_breaker: CircuitBreaker gating calls to the current backend
- queue: EventQueue holding events while delivery is blocked
- retry: RetryScheduler arming backoff timers for failed events
- sanitizer: Sanitizer redacting PII before delivery
- sampling: should_sample() for rate and per-operation sampling
- orchestrator: TelemetryOrchestrator tying the above together
- factory: create_orchestrator() building one from settings
- services: metrics / traces / logs facades

Usage:
    from hydropulse.telemetry import create_orchestrator

    async with create_orchestrator(settings) as telemetry:
        await telemetry.metrics.increment("jobs_started")
        async with telemetry.traces.span("run_job"):
            ...
"""

from hydropulse.telemetry.circuit_breaker import CircuitBreaker
from hydropulse.telemetry.factory import (
    create_orchestrator,
    discover_backend_registry,
    resolve_backend_pair,
)
from hydropulse.telemetry.orchestrator import (
    PLACEHOLDER_SPAN_PREFIX,
    TelemetryOrchestrator,
    is_placeholder_span,
)
from hydropulse.telemetry.queue import EventQueue
from hydropulse.telemetry.retry import RetryScheduler
from hydropulse.telemetry.sampling import resolve_rate, should_sample
from hydropulse.telemetry.sanitizer import Sanitizer
from hydropulse.telemetry.services import LogsService, MetricsService, TracesService

__all__ = [
    "PLACEHOLDER_SPAN_PREFIX",
    "CircuitBreaker",
    "EventQueue",
    "LogsService",
    "MetricsService",
    "RetryScheduler",
    "Sanitizer",
    "TelemetryOrchestrator",
    "TracesService",
    "create_orchestrator",
    "discover_backend_registry",
    "is_placeholder_span",
    "resolve_backend_pair",
    "resolve_rate",
    "should_sample",
]
