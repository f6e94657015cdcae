# src/hydropulse/core/logging.py
"""Opt-in rendering of hydropulse's own diagnostics.

Every hydropulse module logs through ``structlog.get_logger(__name__)`` and
nothing is configured on import, so an application that already owns its
logging needs nothing from this module. configure_logging() is for services
and scripts that want the library's diagnostics rendered without setting
logging up themselves; ``create_orchestrator(..., configure_logs=True)``
calls it with the orchestrator's settings.

Scope:
    structlog is routed through stdlib logging process-wide (structlog has a
    single global configuration). The handler is attached to the
    ``hydropulse`` stdlib logger only, which stops propagating to the root
    logger; root handlers and the application's other loggers are left
    alone unless replace_root_handlers=True.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

if TYPE_CHECKING:
    from hydropulse.core.config import TelemetrySettings

LIBRARY_LOGGER = "hydropulse"

# Transport libraries that backend adapters pull in. Only quietened when
# hydropulse owns the root logger.
_TRANSPORT_LOGGERS: tuple[str, ...] = (
    "urllib3",
    "opentelemetry",
    "httpx",
    "httpcore",
)

_HANDLER_MARKER = "_hydropulse_handler"


def _resolve_level(settings: TelemetrySettings | None, level: str | None) -> int:
    if level is None:
        level = "DEBUG" if settings is not None and settings.debug else "WARNING"
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def _build_handler(stream: TextIO, json_output: bool, pre_chain: list[Any]) -> logging.Handler:
    renderer: Any = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    )
    processors: list[Any] = [ProcessorFormatter.remove_processors_meta]
    if json_output:
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ProcessorFormatter(processors=processors, foreign_pre_chain=pre_chain))
    setattr(handler, _HANDLER_MARKER, True)
    return handler


def configure_logging(
    settings: TelemetrySettings | None = None,
    *,
    json_output: bool = False,
    level: str | None = None,
    stream: TextIO | None = None,
    replace_root_handlers: bool = False,
) -> logging.Handler:
    """Render hydropulse diagnostics to a stream.

    Calling again replaces the handler installed by the previous call
    rather than adding a second one.

    Args:
        settings: Orchestrator settings; settings.debug selects DEBUG,
            otherwise WARNING
        json_output: One JSON object per line instead of console text
        level: Explicit level name, overriding settings
        stream: Destination (defaults to sys.stderr at call time)
        replace_root_handlers: Install on the root logger instead, replacing
            its handlers and quietening transport libraries. For processes
            where hydropulse's host has no logging setup of its own.

    Returns:
        The installed handler.

    Raises:
        ValueError: If level is not a stdlib logging level name.
    """
    log_level = _resolve_level(settings, level)

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Not cached, so a later configure() call takes effect
        cache_logger_on_first_use=False,
    )

    handler = _build_handler(stream if stream is not None else sys.stderr, json_output, pre_chain)

    if replace_root_handlers:
        target = logging.getLogger()
        target.handlers = [handler]
        transport_level = max(log_level, logging.WARNING)
        for name in _TRANSPORT_LOGGERS:
            logging.getLogger(name).setLevel(transport_level)
    else:
        target = logging.getLogger(LIBRARY_LOGGER)
        target.handlers = [h for h in target.handlers if not getattr(h, _HANDLER_MARKER, False)]
        target.addHandler(handler)
        target.propagate = False
    target.setLevel(log_level)
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound logger for a module (typically ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
