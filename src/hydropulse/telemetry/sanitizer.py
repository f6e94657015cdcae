# src/hydropulse/telemetry/sanitizer.py
"""PII redaction applied to every payload before it leaves the process.

The sanitizer walks the payload structure and rewrites string leaves:
- Dataclass records are rebuilt with dataclasses.replace()
- Mappings and lists/tuples are rebuilt element by element
- Strings have each configured pattern applied in order
- Everything else (numbers, bools, None, datetimes, enums) passes through

Mapping keys are never rewritten; attribute names are schema, not data.

Fail-open: if anything goes wrong during the walk, a warning is logged and
the ORIGINAL payload is returned. Telemetry delivery is never blocked by
the redaction step, at the cost of possibly shipping unredacted data when
the walk itself breaks.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, TypeVar

import structlog

from hydropulse.core.config import SanitizationSettings

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Sanitizer:
    """Ordered-pattern redactor over structured payloads.

    Example:
        sanitizer = Sanitizer(SanitizationSettings())
        clean = sanitizer.sanitize({"message": "call 4111111111111111"})
        assert clean == {"message": "call [REDACTED]"}
    """

    def __init__(self, settings: SanitizationSettings) -> None:
        self._enabled = settings.enabled
        self._patterns: tuple[re.Pattern[str], ...] = settings.compiled_patterns()
        self._marker = settings.redaction_marker

    @property
    def enabled(self) -> bool:
        return self._enabled

    def sanitize(self, payload: T) -> T:
        """Return a redacted copy of payload (or payload itself when disabled).

        Never raises.
        """
        if not self._enabled or not self._patterns:
            return payload
        try:
            return self._walk(payload)  # type: ignore[no-any-return]
        except Exception as e:
            logger.warning(
                "Sanitization failed, passing payload through unredacted",
                payload_type=type(payload).__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            return payload

    def redact_text(self, text: str) -> str:
        for pattern in self._patterns:
            text = pattern.sub(self._marker, text)
        return text

    def _walk(self, value: Any) -> Any:
        # Enum before str: StrEnum members are str instances
        if isinstance(value, Enum):
            return value
        if isinstance(value, str):
            return self.redact_text(value)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            changes = {f.name: self._walk(getattr(value, f.name)) for f in dataclasses.fields(value) if f.init}
            return dataclasses.replace(value, **changes)
        if isinstance(value, Mapping):
            return {key: self._walk(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._walk(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self._walk(item) for item in value)
        return value
