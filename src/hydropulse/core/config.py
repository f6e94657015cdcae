# src/hydropulse/core/config.py
"""
Configuration schema and normalization for the telemetry orchestrator.

Uses Pydantic for validation. Settings are frozen (immutable) after
construction, and every optional section is filled with defaults so the
orchestrator never has to null-check a policy value.

Loading settings from environment variables or files is the caller's job;
load_settings() accepts an already-assembled mapping.
"""

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from hydropulse.contracts.enums import AUTO_BACKEND_MODE, Environment
from hydropulse.contracts.errors import TelemetryConfigError

# Default redaction patterns, applied in order.
CREDIT_CARD_PATTERN = r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"
EMAIL_PATTERN = r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"
SSN_PATTERN = r"\b\d{3}-\d{2}-\d{4}\b"
DEFAULT_PII_PATTERNS: tuple[str, ...] = (CREDIT_CARD_PATTERN, EMAIL_PATTERN, SSN_PATTERN)

DEFAULT_REDACTION_MARKER = "[REDACTED]"

# ReDoS detection: nested quantifiers such as (a+)+ backtrack exponentially
# on adversarial input. Telemetry payloads are attacker-influenced (user
# agents, URLs, messages), so reject these constructs at load time.
_NESTED_QUANTIFIER_RE = re.compile(
    r"[+*]\)["  # quantified group followed by
    r"+*{]"  # another quantifier
    r"|"
    r"\([^)]*[+*][^)]*\)["  # group containing quantifier, followed by
    r"+*{]"  # another quantifier
)

_MAX_PATTERN_LENGTH = 1000


def _validate_regex_safety(pattern: str) -> None:
    """Reject regex patterns with known ReDoS-prone constructs.

    Raises:
        ValueError: If pattern is too long or contains nested quantifiers
    """
    if len(pattern) > _MAX_PATTERN_LENGTH:
        raise ValueError(f"Regex pattern exceeds maximum length ({_MAX_PATTERN_LENGTH} chars): {pattern[:50]}...")
    if _NESTED_QUANTIFIER_RE.search(pattern):
        raise ValueError(f"Regex pattern contains nested quantifiers (ReDoS risk): {pattern}")


class BackendSettings(BaseModel):
    """Backend selection and per-backend connection parameters.

    Example:
        backend:
          mode: auto
          fallback: console
          connections:
            otlp:
              endpoint: http://localhost:4318
            console:
              format: pretty
    """

    model_config = {"frozen": True}

    mode: str = Field(
        default=AUTO_BACKEND_MODE,
        description="'auto' to pick the first declared connection, or a registered backend name",
    )
    fallback: str | None = Field(
        default=None,
        description="Backend name to switch to when the primary fails (default: next connection, then console)",
    )
    connections: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Backend name -> backend-specific options, in preference order",
    )

    @field_validator("mode")
    @classmethod
    def validate_mode_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("backend mode cannot be empty")
        return v.strip()

    @field_validator("fallback")
    @classmethod
    def validate_fallback_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("fallback backend name cannot be empty")
        return v.strip() if v is not None else None


class SamplingRule(BaseModel):
    """Per-operation sampling override.

    A rule applies when every condition it sets matches. The first matching
    rule wins; unmatched operations use the global rate.
    """

    model_config = {"frozen": True}

    name: str = Field(description="Rule name for diagnostics")
    rate: float = Field(ge=0.0, le=1.0, description="Fraction of matching operations to keep")
    service: str | None = Field(default=None, description="Match only this service name")
    operation: str | None = Field(default=None, description="Match only this metric/operation name")
    attributes: dict[str, Any] | None = Field(default=None, description="Match only when these attributes are present and equal")


class SamplingSettings(BaseModel):
    """Sampling configuration."""

    model_config = {"frozen": True}

    rate: float = Field(default=1.0, ge=0.0, le=1.0, description="Global fraction of operations to keep")
    rules: list[SamplingRule] = Field(default_factory=list, description="Ordered per-operation overrides")


class BatchingSettings(BaseModel):
    """Queue bounds and buffered flush timing."""

    model_config = {"frozen": True}

    max_queue_size: int = Field(default=1000, gt=0, description="Maximum events held while backends are unavailable")
    scheduled_delay_ms: int = Field(default=5000, gt=0, description="Delay before buffered logs are flushed")


class CircuitBreakerSettings(BaseModel):
    """Circuit breaker thresholds."""

    model_config = {"frozen": True}

    failure_threshold: int = Field(default=5, gt=0, description="Consecutive failures before the breaker opens")
    reset_timeout_ms: int = Field(default=60_000, gt=0, description="Cool-down before a half-open probe is allowed")


class RetrySettings(BaseModel):
    """Retry behavior configuration.

    max_attempts counts retries, not the initial delivery. max_attempts=3
    means: try, retry, retry, retry.
    """

    model_config = {"frozen": True}

    max_attempts: int = Field(default=3, ge=0, description="Maximum retry attempts per event")
    initial_delay_ms: float = Field(default=1000.0, gt=0, description="Delay before the first retry")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Exponential backoff base")

    def delay_seconds(self, attempt: int) -> float:
        """Backoff delay for the given 1-based retry attempt, in seconds."""
        return self.initial_delay_ms * self.backoff_multiplier ** (attempt - 1) / 1000.0


class SanitizationSettings(BaseModel):
    """PII redaction configuration."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=True, description="Redact payloads before they leave the process")
    patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PII_PATTERNS),
        description="Ordered regex patterns whose matches are redacted",
    )
    redaction_marker: str = Field(default=DEFAULT_REDACTION_MARKER, description="Replacement text for matches")

    @field_validator("patterns")
    @classmethod
    def validate_patterns_compile(cls, v: list[str]) -> list[str]:
        """Compile every pattern now so bad regexes fail at load time."""
        for pattern in v:
            _validate_regex_safety(pattern)
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid redaction pattern {pattern!r}: {e}") from e
        return v

    def compiled_patterns(self) -> tuple[re.Pattern[str], ...]:
        return tuple(re.compile(pattern) for pattern in self.patterns)


class TelemetrySettings(BaseModel):
    """Top-level telemetry configuration.

    service_name and service_version are required; every other section is
    optional and filled with defaults.
    """

    model_config = {"frozen": True}

    service_name: str = Field(description="Name of the instrumented service")
    service_version: str = Field(description="Version of the instrumented service")
    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Deployment environment")

    backend: BackendSettings = Field(default_factory=BackendSettings, description="Backend selection")
    sampling: SamplingSettings = Field(default_factory=SamplingSettings, description="Sampling configuration")
    batching: BatchingSettings = Field(default_factory=BatchingSettings, description="Queue bounds")
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings, description="Breaker thresholds")
    retry: RetrySettings = Field(default_factory=RetrySettings, description="Retry policy")
    sanitization: SanitizationSettings = Field(default_factory=SanitizationSettings, description="PII redaction")
    debug: bool = Field(default=False, description="Log orchestrator state transitions at info level")

    @field_validator("service_name", "service_version")
    @classmethod
    def validate_identity_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def validate_fallback_differs_from_named_primary(self) -> "TelemetrySettings":
        """A named primary cannot also be its own fallback."""
        mode = self.backend.mode
        if mode != AUTO_BACKEND_MODE and self.backend.fallback == mode:
            raise ValueError(f"backend.fallback must differ from backend.mode ('{mode}')")
        return self


def load_settings(raw: "TelemetrySettings | Mapping[str, Any]") -> TelemetrySettings:
    """Normalize caller-provided configuration into TelemetrySettings.

    Args:
        raw: Already-validated settings (returned unchanged) or a mapping of
            settings fields

    Returns:
        Validated, frozen TelemetrySettings with all defaults filled

    Raises:
        TelemetryConfigError: If required fields are missing or any value is invalid
    """
    if isinstance(raw, TelemetrySettings):
        return raw
    if not isinstance(raw, Mapping):
        raise TelemetryConfigError(f"Telemetry configuration must be a mapping, got {type(raw).__name__}")
    try:
        return TelemetrySettings.model_validate(dict(raw))
    except ValidationError as e:
        raise TelemetryConfigError(f"Invalid telemetry configuration: {e}") from e
