# src/hydropulse/telemetry/services/logs.py
"""Log facade: level helpers, structured event helpers and a batching buffer.

buffer_log() collects entries and sends them as one batch, either when 100
entries have accumulated or batching.scheduled_delay_ms after the first
buffered entry, whichever comes first.
"""

from __future__ import annotations

import asyncio
import traceback
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Literal

import structlog

from hydropulse.contracts.enums import LogLevel
from hydropulse.contracts.events import LogData

if TYPE_CHECKING:
    from hydropulse.telemetry.orchestrator import TelemetryOrchestrator

logger = structlog.get_logger(__name__)

SecurityEventType = Literal["authentication", "authorization", "data_access", "suspicious_activity"]


def _compact(attributes: Mapping[str, Any]) -> dict[str, Any]:
    """Drop attributes whose value was not supplied."""
    return {key: value for key, value in attributes.items() if value is not None}


def _error_attributes(error: BaseException) -> dict[str, Any]:
    attributes: dict[str, Any] = {
        "error_name": type(error).__name__,
        "error_message": str(error),
    }
    if error.__traceback__ is not None:
        attributes["error_stack"] = "".join(traceback.format_exception(error))
    return attributes


class LogsService:
    """Convenience wrappers around TelemetryOrchestrator.record_log().

    Example:
        >>> await orchestrator.logs.info("order placed", {"order_id": "A-17"})
        >>> try:
        ...     charge(card)
        ... except PaymentError as e:
        ...     await orchestrator.logs.error("charge failed", e, {"order_id": "A-17"})
    """

    BUFFER_FLUSH_THRESHOLD = 100

    def __init__(self, orchestrator: TelemetryOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._buffer: list[LogData] = []
        self._flush_timer: asyncio.Task[None] | None = None

    # =========================================================================
    # Levels
    # =========================================================================

    async def log(
        self,
        level: LogLevel | str,
        message: str,
        attributes: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        span_id: str | None = None,
    ) -> None:
        entry = LogData(
            level=LogLevel(level),
            message=message,
            attributes=dict(attributes or {}),
            trace_id=trace_id,
            span_id=span_id,
        )
        await self._orchestrator.record_log(entry)

    async def debug(
        self,
        message: str,
        attributes: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        span_id: str | None = None,
    ) -> None:
        await self.log(LogLevel.DEBUG, message, attributes, trace_id, span_id)

    async def info(
        self,
        message: str,
        attributes: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        span_id: str | None = None,
    ) -> None:
        await self.log(LogLevel.INFO, message, attributes, trace_id, span_id)

    async def warn(
        self,
        message: str,
        attributes: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        span_id: str | None = None,
    ) -> None:
        await self.log(LogLevel.WARN, message, attributes, trace_id, span_id)

    async def error(
        self,
        message: str,
        error: BaseException | None = None,
        attributes: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        span_id: str | None = None,
    ) -> None:
        """Log at error level, attaching name, message and stack of ``error``.

        Caller-supplied attributes override the derived error fields.
        """
        merged = _error_attributes(error) if error is not None else {}
        merged.update(attributes or {})
        await self.log(LogLevel.ERROR, message, merged, trace_id, span_id)

    # =========================================================================
    # Structured events
    # =========================================================================

    async def log_http_request(
        self,
        method: str,
        url: str,
        status_code: int,
        duration_ms: float,
        user_agent: str | None = None,
        user_id: str | None = None,
    ) -> None:
        await self.info(
            "HTTP Request",
            _compact(
                {
                    "http_method": method,
                    "http_url": url,
                    "http_status_code": status_code,
                    "http_duration_ms": duration_ms,
                    "http_user_agent": user_agent,
                    "user_id": user_id,
                }
            ),
        )

    async def log_database_query(
        self,
        operation: str,
        table: str,
        duration_ms: float,
        rows_affected: int | None = None,
        query: str | None = None,
    ) -> None:
        await self.info(
            "Database Query",
            _compact(
                {
                    "db_operation": operation,
                    "db_table": table,
                    "db_duration_ms": duration_ms,
                    "db_rows_affected": rows_affected,
                    "db_query": query,
                }
            ),
        )

    async def log_external_service_call(
        self,
        service_name: str,
        operation: str,
        success: bool,
        duration_ms: float,
        status_code: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """Info on success, error on failure."""
        await self.log(
            LogLevel.INFO if success else LogLevel.ERROR,
            f"External Service Call: {service_name}",
            _compact(
                {
                    "external_service": service_name,
                    "external_operation": operation,
                    "external_success": success,
                    "external_duration_ms": duration_ms,
                    "external_status_code": status_code,
                    "external_error_message": error_message,
                }
            ),
        )

    async def log_business_event(
        self,
        event_name: str,
        category: str,
        success: bool,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Info on success, warn on failure."""
        await self.log(
            LogLevel.INFO if success else LogLevel.WARN,
            f"Business Event: {event_name}",
            {
                "business_event": event_name,
                "business_category": category,
                "business_success": success,
                **(metadata or {}),
            },
        )

    async def log_security_event(
        self,
        event_type: SecurityEventType,
        message: str,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        additional_data: Mapping[str, Any] | None = None,
    ) -> None:
        await self.warn(
            f"Security Event: {message}",
            {
                **_compact(
                    {
                        "security_event_type": event_type,
                        "user_id": user_id,
                        "ip_address": ip_address,
                        "user_agent": user_agent,
                    }
                ),
                **(additional_data or {}),
            },
        )

    async def log_performance_metric(
        self,
        metric_name: str,
        value: float,
        unit: str,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        await self.info(
            f"Performance Metric: {metric_name}",
            {
                "performance_metric": metric_name,
                "performance_value": value,
                "performance_unit": unit,
                **(context or {}),
            },
        )

    async def log_error_with_context(
        self,
        error: BaseException,
        operation: str | None = None,
        user_id: str | None = None,
        request_id: str | None = None,
        additional_data: Mapping[str, Any] | None = None,
    ) -> None:
        await self.error(
            f"Error in {operation or 'unknown operation'}: {error}",
            error,
            {
                **_compact({"user_id": user_id, "request_id": request_id}),
                **(additional_data or {}),
            },
        )

    async def log_user_action(
        self,
        action: str,
        component: str,
        user_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        await self.info(
            f"User Action: {action}",
            {
                **_compact({"user_action": action, "component": component, "user_id": user_id}),
                **(metadata or {}),
            },
        )

    # =========================================================================
    # Batching
    # =========================================================================

    async def log_batch(self, entries: Iterable[LogData]) -> None:
        """Record each entry in order."""
        for entry in entries:
            await self._orchestrator.record_log(entry)

    @property
    def buffered_count(self) -> int:
        return len(self._buffer)

    async def buffer_log(
        self,
        level: LogLevel | str,
        message: str,
        attributes: Mapping[str, Any] | None = None,
    ) -> None:
        """Buffer an entry for batched delivery.

        Flushes immediately once BUFFER_FLUSH_THRESHOLD entries are held;
        otherwise arms a one-shot timer for batching.scheduled_delay_ms.
        """
        self._buffer.append(LogData(level=LogLevel(level), message=message, attributes=dict(attributes or {})))
        if len(self._buffer) >= self.BUFFER_FLUSH_THRESHOLD:
            await self.flush_buffer()
        elif self._flush_timer is None:
            delay_s = self._orchestrator.settings.batching.scheduled_delay_ms / 1000.0
            self._flush_timer = asyncio.get_running_loop().create_task(
                self._flush_after(delay_s),
                name="hydropulse-log-buffer-flush",
            )

    async def _flush_after(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        try:
            await self.flush_buffer()
        except Exception as e:
            logger.error("Scheduled log buffer flush failed", error=str(e), error_type=type(e).__name__)

    async def flush_buffer(self) -> None:
        """Send every buffered entry now and disarm the flush timer."""
        timer = self._flush_timer
        self._flush_timer = None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
        if not self._buffer:
            return
        entries = self._buffer
        self._buffer = []
        await self.log_batch(entries)
