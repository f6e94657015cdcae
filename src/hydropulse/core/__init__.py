# src/hydropulse/core/__init__.py
"""Core infrastructure: Configuration, Clock, Logging."""

from hydropulse.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from hydropulse.core.config import (
    DEFAULT_PII_PATTERNS,
    DEFAULT_REDACTION_MARKER,
    BackendSettings,
    BatchingSettings,
    CircuitBreakerSettings,
    RetrySettings,
    SamplingRule,
    SamplingSettings,
    SanitizationSettings,
    TelemetrySettings,
    load_settings,
)
from hydropulse.core.logging import configure_logging, get_logger

__all__ = [
    "DEFAULT_CLOCK",
    "DEFAULT_PII_PATTERNS",
    "DEFAULT_REDACTION_MARKER",
    "BackendSettings",
    "BatchingSettings",
    "CircuitBreakerSettings",
    "Clock",
    "MockClock",
    "RetrySettings",
    "SamplingRule",
    "SamplingSettings",
    "SanitizationSettings",
    "SystemClock",
    "TelemetrySettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
