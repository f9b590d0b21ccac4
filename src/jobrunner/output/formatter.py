"""Report rendering.

Turns a RunOutcome into the human-readable report that is printed,
delivered and persisted. Rendering is a pure function of its inputs: the
clock readings are already captured in the outcome and the environment is
passed in as a snapshot.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from jobrunner.core.config import ReportSettings, RunPolicy
from jobrunner.execution.engine import RunOutcome
from jobrunner.output.redaction import redact_environment
from jobrunner.utils.time import format_duration, format_timestamp

OUTPUT_HEADER = "--- Program output follows: ---"
NO_OUTPUT_MARKER = "(no output produced)"


class RunStatus(Enum):
    """Two-valued status of a finished run."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def glyph(self) -> str:
        """Short indicator for notification titles and chat messages."""
        return "🟢" if self is RunStatus.SUCCEEDED else "🔴"

    @classmethod
    def from_outcome(cls, outcome: RunOutcome) -> RunStatus:
        return cls.SUCCEEDED if outcome.success else cls.FAILED


@dataclass(frozen=True)
class Report:
    """A rendered run report."""

    text: str
    summary: str
    status: RunStatus

    @property
    def glyph(self) -> str:
        return self.status.glyph

    @property
    def headline(self) -> str:
        """Glyph plus summary, e.g. "🔴 [host] Failed running backup"."""
        return f"{self.glyph} {self.summary}"


def summary_line(hostname: str, status: RunStatus, job_name: str) -> str:
    return f"[{hostname}] {status.value} running {job_name}"


def format_report(
    policy: RunPolicy,
    outcome: RunOutcome,
    settings: ReportSettings,
    environ: Mapping[str, str],
    cwd: str | None = None,
) -> Report:
    """Render the report for one invocation.

    Args:
        policy: The policy the run was executed with.
        outcome: The engine's terminal outcome.
        settings: Hostname and environment redaction rules.
        environ: Snapshot of the supervisor's environment.
        cwd: Directory shown when the policy has no working directory;
            defaults to the current directory.

    Returns:
        The immutable Report.
    """
    status = RunStatus.from_outcome(outcome)
    summary = summary_line(settings.hostname, status, outcome.job_name)
    work_dir = str(policy.work_dir) if policy.work_dir else (cwd or os.getcwd())

    lines = [
        summary,
        f"Working directory: {work_dir}",
        f"Command: {shlex.join(policy.argv)}",
        f"Exit code: {outcome.exit_code}",
        "",
        f"Duration: {format_duration(outcome.duration_seconds)}",
        f"Start time: {format_timestamp(outcome.start_time)}",
        f"End time: {format_timestamp(outcome.end_time)}",
        f"Attempts: {outcome.attempts}",
        f"Retries allowed: {policy.retries}",
    ]
    if policy.retry_delay_seconds > 0:
        lines.append(f"Retry delay: {policy.retry_delay_seconds:g}s")
    if policy.run_as is not None:
        lines.append(f"Run as: {policy.run_as.describe()}")
    lines.append("")

    if not settings.redaction.hide_env:
        lines.append("Environment:")
        lines.extend(
            f"\t{name}={value}"
            for name, value in redact_environment(environ, settings.redaction)
        )
        lines.append("")

    if outcome.warnings:
        lines.append("Setup warnings:")
        lines.extend(f"- {warning}" for warning in outcome.warnings)
        lines.append("")

    lines.append(OUTPUT_HEADER)
    lines.append("")
    lines.append(outcome.output if outcome.output else NO_OUTPUT_MARKER)

    return Report(text="\n".join(lines) + "\n", summary=summary, status=status)


__all__ = [
    "NO_OUTPUT_MARKER",
    "OUTPUT_HEADER",
    "Report",
    "RunStatus",
    "format_report",
    "summary_line",
]
