# src/hydropulse/telemetry/sampling.py
"""Sampling decisions for metrics and trace starts.

Sampling runs before sanitization, so dropped observations are never
redacted or queued. Logs are not sampled.

Rule resolution:
- Rules are checked in configured order; the first rule whose conditions
  all match supplies the rate
- A rule with no conditions matches everything
- No matching rule: the global sampling.rate applies
"""

from __future__ import annotations

import random
from collections.abc import Callable, Mapping
from typing import Any

from hydropulse.core.config import SamplingRule, SamplingSettings

RandomSource = Callable[[], float]


def _rule_matches(
    rule: SamplingRule,
    service_name: str,
    operation: str,
    attributes: Mapping[str, Any],
) -> bool:
    if rule.service is not None and rule.service != service_name:
        return False
    if rule.operation is not None and rule.operation != operation:
        return False
    if rule.attributes:
        for key, expected in rule.attributes.items():
            if key not in attributes or attributes[key] != expected:
                return False
    return True


def resolve_rate(
    settings: SamplingSettings,
    service_name: str,
    operation: str,
    attributes: Mapping[str, Any],
) -> float:
    """Return the sampling rate that applies to one operation.

    Example:
        >>> settings = SamplingSettings(rate=0.5, rules=[SamplingRule(name="hc", rate=0.0, operation="health_check")])
        >>> resolve_rate(settings, "api", "health_check", {})
        0.0
        >>> resolve_rate(settings, "api", "checkout", {})
        0.5
    """
    for rule in settings.rules:
        if _rule_matches(rule, service_name, operation, attributes):
            return rule.rate
    return settings.rate


def should_sample(
    settings: SamplingSettings,
    service_name: str,
    operation: str,
    attributes: Mapping[str, Any],
    rng: RandomSource = random.random,
) -> bool:
    """Decide whether to keep one observation.

    Rates of exactly 0.0 and 1.0 are decided without consulting rng.
    """
    rate = resolve_rate(settings, service_name, operation, attributes)
    if rate >= 1.0:
        return True
    if rate <= 0.0:
        return False
    return rng() < rate
