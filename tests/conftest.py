# tests/conftest.py
"""Shared test fixtures and hypothesis configuration.

Fixtures:
- base_settings: Minimal valid settings mapping (service identity only)
- mock_clock: MockClock starting at t=0
- primary / fallback: RecordingBackend doubles
- orchestrator: TelemetryOrchestrator wired to the doubles with long retry
  delays so timers never fire unless a test advances them explicitly
- _silence_structlog (autouse): structlog output discarded during tests

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from hydropulse.core.clock import MockClock
from hydropulse.telemetry.orchestrator import TelemetryOrchestrator
from tests.fixtures.backends import RecordingBackend

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Fixtures
# =============================================================================


def make_settings(**overrides: Any) -> dict[str, Any]:
    """Settings mapping with service identity filled in and long retry delays."""
    raw: dict[str, Any] = {
        "service_name": "checkout",
        "service_version": "1.4.2",
        "retry": {"initial_delay_ms": 600_000},
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def base_settings() -> dict[str, Any]:
    return make_settings()


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock(start=0.0)


@pytest.fixture
def primary() -> RecordingBackend:
    return RecordingBackend("primary")


@pytest.fixture
def fallback() -> RecordingBackend:
    return RecordingBackend("fallback")


@pytest.fixture
def orchestrator(
    base_settings: dict[str, Any],
    primary: RecordingBackend,
    fallback: RecordingBackend,
    mock_clock: MockClock,
) -> TelemetryOrchestrator:
    return TelemetryOrchestrator(base_settings, primary, fallback, clock=mock_clock)


@pytest.fixture(autouse=True)
def _silence_structlog() -> Iterator[None]:
    """Keep library diagnostics out of captured stdout.

    structlog's default configuration prints to stdout, which would mix
    with console backend output. capture_logs() still works on top of this.
    """
    structlog.configure(processors=[], logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.reset_defaults()
