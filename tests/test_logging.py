"""Tests for jobrunner.core.logging module."""

from __future__ import annotations

import json
import logging

import pytest

from jobrunner.core.logging import (
    SENSITIVE_PATTERNS,
    RunnerLogger,
    _sanitize_event_dict,
    _sanitize_value,
    configure_logging,
    get_logger,
)


class TestSensitivePatterns:
    """Tests for sensitive field detection and sanitization."""

    def test_known_sensitive_patterns(self):
        assert "password" in SENSITIVE_PATTERNS
        assert "token" in SENSITIVE_PATTERNS
        assert "secret" in SENSITIVE_PATTERNS

    def test_sanitize_value_redacts_compound_keys(self):
        """Compound key names containing a sensitive pattern are redacted."""
        assert _sanitize_value("smtp_password", "hunter22") == "[REDACTED]"
        assert _sanitize_value("NTFY_ACCESS_TOKEN", "tk_1") == "[REDACTED]"

    def test_sanitize_value_preserves_safe_values(self):
        assert _sanitize_value("attempt", 2) == 2
        assert _sanitize_value("job_name", "backup") == "backup"

    def test_sanitize_event_dict_handles_nested_dicts(self):
        event_dict = {
            "event": "delivery_failed",
            "channel": "ntfy",
            "config": {"access_token": "tk_1", "topic": "jobs"},
        }

        result = _sanitize_event_dict(None, "info", event_dict)

        assert result["event"] == "delivery_failed"
        assert result["config"]["access_token"] == "[REDACTED]"
        assert result["config"]["topic"] == "jobs"


class TestRunnerLogger:
    """Tests for the RunnerLogger class."""

    def test_get_logger_creates_runner_logger(self):
        logger = get_logger("engine")
        assert isinstance(logger, RunnerLogger)
        assert logger._component == "engine"

    def test_bind_returns_new_logger(self):
        logger = get_logger("engine", job_name="backup")
        bound = logger.bind(attempt=2)

        assert bound is not logger
        assert bound._context == {"component": "engine", "job_name": "backup", "attempt": 2}
        assert "attempt" not in logger._context


class TestConfigureLogging:
    """Tests for the configure_logging function."""

    def test_sets_log_level(self):
        configure_logging(level="DEBUG", format="console")
        assert logging.getLogger().level == logging.DEBUG

    def test_removes_existing_handlers(self):
        root_logger = logging.getLogger()
        existing_handler = logging.StreamHandler()
        root_logger.addHandler(existing_handler)

        configure_logging(level="INFO", format="console")

        assert existing_handler not in root_logger.handlers
        assert len(root_logger.handlers) == 1

    def test_json_output_on_stderr(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(level="INFO", format="json", include_timestamps=False)

        get_logger("engine").info("attempt_finished", attempt=1, smtp_password="x")

        captured = capsys.readouterr()
        assert captured.out == ""
        entry = json.loads(captured.err.strip().splitlines()[-1])
        assert entry["event"] == "attempt_finished"
        assert entry["component"] == "engine"
        assert entry["attempt"] == 1
        assert entry["smtp_password"] == "[REDACTED]"
        assert "timestamp" not in entry

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(level="WARNING", format="json")

        get_logger("engine").info("quiet")

        assert capsys.readouterr().err == ""
