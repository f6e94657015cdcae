# src/hydropulse/telemetry/services/metrics.py
"""Metric facade: shapes counters, gauges and timings into MetricData."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from hydropulse.contracts.events import MetricData

if TYPE_CHECKING:
    from hydropulse.telemetry.orchestrator import TelemetryOrchestrator


class MetricsService:
    """Convenience wrappers around TelemetryOrchestrator.record_metric().

    Adds no failure modes of its own: every helper builds a MetricData and
    hands it to the orchestrator, which never raises for delivery problems.

    Example:
        >>> await orchestrator.metrics.counter("orders_total", attributes={"region": "eu"})
        >>> await orchestrator.metrics.timing("checkout_latency", 42.5)
    """

    def __init__(self, orchestrator: TelemetryOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def _record(
        self,
        name: str,
        value: float,
        unit: str | None,
        attributes: Mapping[str, Any] | None,
    ) -> None:
        metric = MetricData(name=name, value=value, unit=unit, attributes=dict(attributes or {}))
        await self._orchestrator.record_metric(metric)

    async def counter(self, name: str, value: float = 1, attributes: Mapping[str, Any] | None = None) -> None:
        await self._record(name, value, "count", attributes)

    async def gauge(self, name: str, value: float, attributes: Mapping[str, Any] | None = None) -> None:
        await self._record(name, value, "gauge", attributes)

    async def histogram(self, name: str, value: float, attributes: Mapping[str, Any] | None = None) -> None:
        await self._record(name, value, "histogram", attributes)

    async def timing(self, name: str, duration_ms: float, attributes: Mapping[str, Any] | None = None) -> None:
        await self._record(name, duration_ms, "milliseconds", attributes)

    async def increment(self, name: str, attributes: Mapping[str, Any] | None = None) -> None:
        await self.counter(name, 1, attributes)

    async def decrement(self, name: str, attributes: Mapping[str, Any] | None = None) -> None:
        await self.counter(name, -1, attributes)

    async def record_response_time(self, endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
        """Record one HTTP request as a duration timing plus a request counter."""
        attributes = {"endpoint": endpoint, "method": method, "status_code": status_code}
        await self.timing("http_request_duration", duration_ms, attributes)
        await self.counter("http_requests_total", 1, attributes)

    async def record_error_rate(self, service: str, operation: str, is_error: bool) -> None:
        await self.counter(
            "operation_total",
            1,
            {"service": service, "operation": operation, "status": "error" if is_error else "success"},
        )

    async def record_resource_usage(
        self,
        cpu_percent: float,
        memory_mb: float,
        heap_used_mb: float | None = None,
    ) -> None:
        await self.gauge("system_cpu_usage_percent", cpu_percent)
        await self.gauge("system_memory_usage_mb", memory_mb)
        if heap_used_mb is not None:
            await self.gauge("process_heap_used_mb", heap_used_mb)

    async def record_business_metric(
        self,
        name: str,
        value: float,
        category: str | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> None:
        """Record a domain metric under the ``business_`` name prefix."""
        merged: dict[str, Any] = {}
        if category is not None:
            merged["category"] = category
        merged.update(attributes or {})
        await self._record(f"business_{name}", value, None, merged)
