"""
Hydropulse: resilient telemetry orchestration for Python services.

Routes metrics, spans and logs to pluggable backends with circuit breaking,
fallback switching, bounded retry and PII redaction.
"""

__version__ = "0.1.0"
