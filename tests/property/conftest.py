# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- Attribute values (scalar telemetry dimensions)
- Payload records (MetricData / LogData)
- Texts with and without PII

Usage:
    from tests.property.conftest import metric_events, clean_text

    @given(events=st.lists(metric_events))
    def test_queue_keeps_newest(events: list[TelemetryEvent]) -> None:
        ...
"""

from __future__ import annotations

from hypothesis import strategies as st

from hydropulse.contracts.enums import LogLevel
from hydropulse.contracts.events import LogData, MetricData, TelemetryEvent

# =============================================================================
# Attribute values
# =============================================================================

# Letters and spaces only: cannot match any default PII pattern
clean_text = st.text(alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ "), max_size=40)

attribute_keys = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=12)

scalar_values = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-1000, max_value=1000),
    st.floats(allow_nan=False, allow_infinity=False, width=32),
    clean_text,
)

attributes = st.dictionaries(attribute_keys, scalar_values, max_size=6)

# =============================================================================
# PII
# =============================================================================

_word = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=10)

email_addresses = st.builds(
    lambda local, domain, tld: f"{local}@{domain}.{tld}",
    _word,
    _word,
    st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=2, max_size=4),
)

ssns = st.builds(
    lambda a, b, c: f"{a:03d}-{b:02d}-{c:04d}",
    st.integers(min_value=0, max_value=999),
    st.integers(min_value=0, max_value=99),
    st.integers(min_value=0, max_value=9999),
)

# =============================================================================
# Payloads
# =============================================================================

metric_data = st.builds(
    MetricData,
    name=attribute_keys,
    value=st.floats(allow_nan=False, allow_infinity=False),
    attributes=attributes,
)

log_data = st.builds(
    LogData,
    level=st.sampled_from(LogLevel),
    message=clean_text,
    attributes=attributes,
)

metric_events = metric_data.map(TelemetryEvent.metric)
