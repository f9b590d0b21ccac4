"""Run orchestration.

Sequences one invocation: run the job, render the report, print and deliver
it when it should be surfaced, ping the success heartbeat, and persist the
log. Each step only sees the values the previous ones returned.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from jobrunner.core.config import (
    DeliveryConfig,
    LogStorageConfig,
    ReportSettings,
    RunPolicy,
)
from jobrunner.core.errors import DeliveryError
from jobrunner.core.logging import get_logger
from jobrunner.execution.engine import RetryEngine, RunOutcome
from jobrunner.notifications.base import DeliveryChannel, deliver
from jobrunner.notifications.factory import create_channels_from_config
from jobrunner.notifications.heartbeat import SuccessHeartbeat
from jobrunner.output.formatter import Report, format_report
from jobrunner.storage import log_filename, persist_log, render_log_content

_logger = get_logger("orchestrator")

ChannelFactory = Callable[[DeliveryConfig, str], list[DeliveryChannel]]


@dataclass
class RunResult:
    """Everything one invocation produced."""

    outcome: RunOutcome
    report: Report
    log_filename: str
    delivery_errors: list[DeliveryError] = field(default_factory=list)
    log_path: Path | None = None


class Orchestrator:
    """Glues the engine, formatter, delivery and log storage together.

    Example usage:
        orchestrator = Orchestrator(
            policy=policy,
            delivery=DeliveryConfig(),
            storage=LogStorageConfig(log_dir=Path("/var/log/jobs")),
            settings=ReportSettings(hostname="web1"),
        )
        result = orchestrator.run()
    """

    def __init__(
        self,
        policy: RunPolicy,
        delivery: DeliveryConfig,
        storage: LogStorageConfig,
        settings: ReportSettings,
        warnings: Sequence[str] = (),
        engine: RetryEngine | None = None,
        channel_factory: ChannelFactory = create_channels_from_config,
        heartbeat_factory: Callable[[str, float], DeliveryChannel] = SuccessHeartbeat,
        environ: Mapping[str, str] | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self._policy = policy
        self._delivery = delivery
        self._storage = storage
        self._settings = settings
        self._warnings = tuple(warnings)
        self._engine = engine or RetryEngine()
        self._channel_factory = channel_factory
        self._heartbeat_factory = heartbeat_factory
        self._environ = environ
        self._stdout = stdout

    def run(self) -> RunResult:
        """Run one invocation end to end.

        Raises:
            ChildLaunchError: If the program could not be started.
            LogPersistError: If the log could not be written.
        """
        log = _logger.bind(job_name=self._policy.name)

        outcome = self._engine.run(self._policy, self._warnings)
        environ = dict(os.environ) if self._environ is None else self._environ
        report = format_report(self._policy, outcome, self._settings, environ)
        filename = log_filename(outcome.job_name, outcome.start_time)
        result = RunResult(outcome=outcome, report=report, log_filename=filename)

        log.info(
            "run_finished",
            success=outcome.success,
            exit_code=outcome.exit_code,
            attempts=outcome.attempts,
            surface=outcome.should_surface,
        )

        if outcome.should_surface:
            out = self._stdout or sys.stdout
            out.write(report.text)
            out.flush()
            channels = self._channel_factory(self._delivery, filename)
            result.delivery_errors.extend(deliver(channels, report))

        if outcome.success and self._delivery.success_notify_url:
            heartbeat = self._heartbeat_factory(
                self._delivery.success_notify_url,
                self._delivery.success_notify_timeout_seconds,
            )
            result.delivery_errors.extend(deliver([heartbeat], report))

        result.log_path = persist_log(
            self._storage,
            filename,
            render_log_content(report.text, result.delivery_errors),
        )
        return result


__all__ = ["Orchestrator", "RunResult"]
