# src/hydropulse/telemetry/services/traces.py
"""Trace facade with an active-span table.

A span id lives in the table from start_span() until finish_span(). Spans
started while tracing is blocked get a placeholder id from the orchestrator;
they are tracked the same way and finishing them sends nothing.
"""

from __future__ import annotations

import asyncio
import traceback
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from hydropulse.contracts.enums import SpanStatus
from hydropulse.contracts.events import TraceData, utc_now

if TYPE_CHECKING:
    from hydropulse.telemetry.orchestrator import TelemetryOrchestrator

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _duration_ms(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() * 1000.0


class TracesService:
    """Span lifecycle helpers around start_trace() / end_trace().

    Example:
        >>> async with orchestrator.traces.span("load_cart", {"cart_id": cart_id}) as span_id:
        ...     orchestrator.traces.add_span_attributes(span_id, {"items": len(cart)})
        ...     cart = await repository.load(cart_id)
    """

    def __init__(self, orchestrator: TelemetryOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._active_spans: dict[str, TraceData] = {}
        self._background_tasks: set[asyncio.Task[None]] = set()

    # =========================================================================
    # Span lifecycle
    # =========================================================================

    async def start_span(
        self,
        operation_name: str,
        attributes: Mapping[str, Any] | None = None,
        parent_span_id: str | None = None,
    ) -> str:
        """Start a span and track it as active. Returns its span id."""
        trace = TraceData(
            operation_name=operation_name,
            attributes=dict(attributes or {}),
            parent_span_id=parent_span_id,
        )
        span_id = await self._orchestrator.start_trace(trace)
        self._active_spans[span_id] = replace(trace, span_id=span_id)
        return span_id

    async def finish_span(
        self,
        span_id: str,
        attributes: Mapping[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Finish an active span, adding duration and any error details.

        Unknown span ids are logged and otherwise ignored.
        """
        span = self._active_spans.pop(span_id, None)
        if span is None:
            logger.warning("Attempted to finish unknown span", span_id=span_id)
            return

        final_attributes: dict[str, Any] = {
            **span.attributes,
            **(attributes or {}),
            "duration_ms": _duration_ms(span.start_time, utc_now()),
            "status": (SpanStatus.ERROR if error is not None else span.status).value,
        }
        if error is not None:
            final_attributes["error"] = True
            final_attributes["error_message"] = str(error)
            if error.__traceback__ is not None:
                final_attributes["error_stack"] = "".join(traceback.format_exception(error))

        await self._orchestrator.end_trace(span_id, final_attributes)

    @asynccontextmanager
    async def span(
        self,
        operation_name: str,
        attributes: Mapping[str, Any] | None = None,
        parent_span_id: str | None = None,
    ) -> AsyncIterator[str]:
        """Wrap a block in a span; caller exceptions are recorded and re-raised.

        The span is finished on every exit, including cancellation.
        """
        span_id = await self.start_span(operation_name, attributes, parent_span_id)
        error: BaseException | None = None
        try:
            yield span_id
        except BaseException as e:
            error = e
            raise
        finally:
            await self.finish_span(span_id, {"success": error is None}, error)

    async def record_span(
        self,
        operation_name: str,
        fn: Callable[[], Awaitable[T]],
        attributes: Mapping[str, Any] | None = None,
    ) -> T:
        """Await fn() inside a span and return its result."""
        async with self.span(operation_name, attributes):
            return await fn()

    def record_sync_span(
        self,
        operation_name: str,
        fn: Callable[[], T],
        attributes: Mapping[str, Any] | None = None,
    ) -> T:
        """Run synchronous fn() and record it as a completed span.

        Delivery is scheduled on the running event loop and not awaited.
        Without a running loop the span is dropped with a warning.
        """
        start = utc_now()
        error: Exception | None = None
        try:
            return fn()
        except Exception as e:
            error = e
            raise
        finally:
            end = utc_now()
            final_attributes: dict[str, Any] = {
                **(attributes or {}),
                "duration_ms": _duration_ms(start, end),
                "success": error is None,
            }
            if error is not None:
                final_attributes["error"] = True
                final_attributes["error_message"] = str(error)
            self._submit_completed(
                TraceData(
                    operation_name=operation_name,
                    start_time=start,
                    end_time=end,
                    attributes=final_attributes,
                    status=SpanStatus.ERROR if error is not None else SpanStatus.OK,
                    error_message=str(error) if error is not None else None,
                )
            )

    def _submit_completed(self, trace: TraceData) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, span not recorded", operation_name=trace.operation_name)
            return
        task = loop.create_task(self._orchestrator.record_span(trace), name="hydropulse-sync-span")
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[None]) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Failed to record sync span", error=str(exc), error_type=type(exc).__name__)

    async def wait_pending(self) -> None:
        """Wait for spans submitted by record_sync_span() to be handed off."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # =========================================================================
    # Operation helpers
    # =========================================================================

    async def trace_http_request(
        self,
        method: str,
        url: str,
        fn: Callable[[], Awaitable[T]],
        attributes: Mapping[str, Any] | None = None,
    ) -> T:
        return await self.record_span(
            f"HTTP {method}",
            fn,
            {"http_method": method, "http_url": url, **(attributes or {})},
        )

    async def trace_database_operation(
        self,
        operation: str,
        table: str,
        fn: Callable[[], Awaitable[T]],
        attributes: Mapping[str, Any] | None = None,
    ) -> T:
        return await self.record_span(
            f"DB {operation}",
            fn,
            {"db_operation": operation, "db_table": table, **(attributes or {})},
        )

    async def trace_external_service(
        self,
        service_name: str,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        attributes: Mapping[str, Any] | None = None,
    ) -> T:
        return await self.record_span(
            f"External {service_name}",
            fn,
            {"external_service": service_name, "external_operation": operation, **(attributes or {})},
        )

    async def trace_business_process(
        self,
        process_name: str,
        fn: Callable[[], Awaitable[T]],
        attributes: Mapping[str, Any] | None = None,
    ) -> T:
        return await self.record_span(
            f"Process {process_name}",
            fn,
            {"process_type": "business", **(attributes or {})},
        )

    # =========================================================================
    # Active-span table
    # =========================================================================

    def get_active_span(self, span_id: str) -> TraceData | None:
        return self._active_spans.get(span_id)

    def get_active_spans(self) -> list[TraceData]:
        return list(self._active_spans.values())

    def add_span_attributes(self, span_id: str, attributes: Mapping[str, Any]) -> None:
        """Merge attributes into an active span. Unknown ids are ignored."""
        span = self._active_spans.get(span_id)
        if span is not None:
            self._active_spans[span_id] = replace(span, attributes={**span.attributes, **attributes})

    def set_span_status(self, span_id: str, status: SpanStatus | str) -> None:
        """Set the status reported when the span finishes. Unknown ids are ignored."""
        span = self._active_spans.get(span_id)
        if span is not None:
            self._active_spans[span_id] = replace(span, status=SpanStatus(status))
