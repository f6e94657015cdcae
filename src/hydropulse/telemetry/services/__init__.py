"""Facade services bound to a TelemetryOrchestrator.

Each orchestrator exposes one of each as ``metrics``, ``traces`` and ``logs``.
"""

from hydropulse.telemetry.services.logs import LogsService
from hydropulse.telemetry.services.metrics import MetricsService
from hydropulse.telemetry.services.traces import TracesService

__all__ = [
    "LogsService",
    "MetricsService",
    "TracesService",
]
