# tests/unit/core/test_logging.py
"""Tests for opt-in rendering of hydropulse diagnostics."""

import io
import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from hydropulse.core.config import load_settings
from hydropulse.core.logging import LIBRARY_LOGGER, configure_logging, get_logger
from hydropulse.telemetry.factory import create_orchestrator
from tests.conftest import make_settings


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    library = logging.getLogger(LIBRARY_LOGGER)
    urllib3 = logging.getLogger("urllib3")
    saved = (
        root.handlers[:],
        root.level,
        library.handlers[:],
        library.level,
        library.propagate,
        urllib3.level,
    )
    yield
    structlog.reset_defaults()
    root.handlers, library.handlers = saved[0], saved[2]
    root.setLevel(saved[1])
    library.setLevel(saved[3])
    library.propagate = saved[4]
    urllib3.setLevel(saved[5])


def _last_json(stream: io.StringIO) -> dict[str, object]:
    return json.loads(stream.getvalue().strip().splitlines()[-1])


class TestLibraryScope:
    def test_root_logger_left_alone(self) -> None:
        root = logging.getLogger()
        handlers_before = root.handlers[:]
        level_before = root.level

        handler = configure_logging(stream=io.StringIO())

        assert root.handlers == handlers_before
        assert root.level == level_before
        library = logging.getLogger(LIBRARY_LOGGER)
        assert handler in library.handlers
        assert library.propagate is False

    def test_repeated_calls_replace_handler(self) -> None:
        configure_logging(stream=io.StringIO())
        second = configure_logging(stream=io.StringIO())

        installed = [h for h in logging.getLogger(LIBRARY_LOGGER).handlers if isinstance(h, logging.StreamHandler)]
        assert installed == [second]

    def test_other_application_loggers_not_captured(self) -> None:
        stream = io.StringIO()
        configure_logging(stream=stream, level="DEBUG")

        logging.getLogger("shop.checkout").warning("application message")

        assert stream.getvalue() == ""


class TestOutput:
    def test_json_output(self) -> None:
        stream = io.StringIO()
        configure_logging(json_output=True, stream=stream)

        get_logger("hydropulse.telemetry.orchestrator").warning("Backend switched", backend="console")

        data = _last_json(stream)
        assert data["event"] == "Backend switched"
        assert data["backend"] == "console"
        assert data["level"] == "warning"
        assert data["logger"] == "hydropulse.telemetry.orchestrator"
        assert "_record" not in data
        assert "_from_structlog" not in data

    def test_console_output(self) -> None:
        stream = io.StringIO()
        configure_logging(json_output=False, stream=stream)

        get_logger("hydropulse.backends.console").warning("Backend switched", backend="console")

        out = stream.getvalue()
        assert "Backend switched" in out
        assert not out.strip().startswith("{")

    def test_stdlib_records_share_format(self) -> None:
        stream = io.StringIO()
        configure_logging(json_output=True, stream=stream)

        logging.getLogger("hydropulse.backends.otlp").warning("stdlib message")

        data = _last_json(stream)
        assert data["event"] == "stdlib message"
        assert data["level"] == "warning"


class TestLevels:
    def test_default_level_is_warning(self) -> None:
        stream = io.StringIO()
        configure_logging(load_settings(make_settings()), stream=stream)

        get_logger("hydropulse.telemetry.orchestrator").info("hidden")

        assert stream.getvalue() == ""
        assert logging.getLogger(LIBRARY_LOGGER).level == logging.WARNING

    def test_debug_setting_selects_debug(self) -> None:
        stream = io.StringIO()
        configure_logging(load_settings(make_settings(debug=True)), json_output=True, stream=stream)

        get_logger("hydropulse.telemetry.orchestrator").debug("Event queued")

        assert _last_json(stream)["event"] == "Event queued"

    def test_explicit_level_overrides_settings(self) -> None:
        configure_logging(load_settings(make_settings(debug=True)), level="ERROR", stream=io.StringIO())
        assert logging.getLogger(LIBRARY_LOGGER).level == logging.ERROR

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="LOUD")


class TestRootMode:
    def test_replaces_root_handlers_and_quietens_transports(self) -> None:
        handler = configure_logging(level="DEBUG", stream=io.StringIO(), replace_root_handlers=True)

        assert logging.getLogger().handlers == [handler]
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestFactoryEntryPoint:
    def test_configure_logs_installs_library_handler(self) -> None:
        create_orchestrator(make_settings(debug=True), configure_logs=True)

        library = logging.getLogger(LIBRARY_LOGGER)
        assert library.level == logging.DEBUG
        assert any(getattr(h, "_hydropulse_handler", False) for h in library.handlers)

    def test_logging_untouched_by_default(self) -> None:
        library = logging.getLogger(LIBRARY_LOGGER)
        handlers_before = library.handlers[:]

        create_orchestrator(make_settings())

        assert library.handlers == handlers_before
