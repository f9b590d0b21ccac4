"""Pytest fixtures for jobrunner tests."""

import logging
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
import structlog

from jobrunner.core.config import RunPolicy
from jobrunner.execution.process import Attempt

BASE_TIME = datetime(2025, 6, 15, 12, 0, 0, 123000, tzinfo=timezone(timedelta(hours=2)))


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


class ScriptedLauncher:
    """Launcher double that returns pre-scripted attempts.

    Each attempt starts 10 seconds after the previous one and lasts one second.
    """

    def __init__(self, results: list[tuple[int, str]]) -> None:
        self._results = list(results)
        self.calls = 0
        self.policies: list[RunPolicy] = []

    def run(self, policy: RunPolicy) -> Attempt:
        exit_code, output = self._results[self.calls]
        start = BASE_TIME + timedelta(seconds=10 * self.calls)
        self.calls += 1
        self.policies.append(policy)
        return Attempt(
            start_time=start,
            end_time=start + timedelta(seconds=1),
            output=output,
            exit_code=exit_code,
        )


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def scripted_launcher() -> type[ScriptedLauncher]:
    """The ScriptedLauncher class, for building launchers per test."""
    return ScriptedLauncher
