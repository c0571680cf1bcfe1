# tests/unit/core/test_logging_setup.py
"""Tests for structured logging configuration."""

import json
import logging

import pytest

from pagepulse.core.logging import configure_logging, get_logger


class TestLoggingConfig:
    """Tests for logging configuration."""

    def test_get_logger_returns_logger(self) -> None:
        logger = get_logger("test")
        assert hasattr(logger, "info")
        assert hasattr(logger, "bind")

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        get_logger("test").info("Batch delivery failed, requeued", events=3, status_code=503)

        log_line = capsys.readouterr().err.strip().split("\n")[-1]
        data = json.loads(log_line)
        assert data["event"] == "Batch delivery failed, requeued"
        assert data["events"] == 3
        assert data["level"] == "info"
        assert "timestamp" in data

    def test_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=False)

        get_logger("test").warning("Beacon refused batch, events lost", events=2)

        err = capsys.readouterr().err
        assert "Beacon refused batch" in err
        assert not err.strip().startswith("{")

    def test_stdlib_records_share_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        logging.getLogger("host.app").warning("from the host")

        data = json.loads(capsys.readouterr().err.strip().split("\n")[-1])
        assert data["event"] == "from the host"

    def test_level_filters_debug(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True, level="INFO")

        get_logger("test").debug("Tracked event")

        assert "Tracked event" not in capsys.readouterr().err

    def test_http_client_loggers_stay_at_warning_in_debug(self) -> None:
        configure_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
