"""Child process launcher.

Runs one attempt of the supervised program and captures its combined
output. stderr is redirected into the stdout pipe, so the captured text
keeps the interleaving the OS produced.

Security Note: Uses subprocess.run() with an argument list, never a shell,
so arguments are not interpolated into a command line.
"""

from __future__ import annotations

import errno
import os
import subprocess
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime

from jobrunner.core.config import RunAsIdentity, RunPolicy
from jobrunner.core.errors import ChildLaunchError, ErrorCode
from jobrunner.core.logging import get_logger
from jobrunner.utils.time import local_now

_logger = get_logger("process")


@dataclass(frozen=True)
class Attempt:
    """One execution of the child program."""

    start_time: datetime
    end_time: datetime
    output: str
    exit_code: int

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()


def supports_identity_switch() -> bool:
    """Whether this platform can start a child under another uid/gid."""
    return sys.platform != "win32" and hasattr(os, "setuid")


def build_child_env(
    run_as: RunAsIdentity | None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Child environment: ours, with HOME pointed at the run-as user's home."""
    env = dict(os.environ if base_env is None else base_env)
    if run_as is not None and run_as.home is not None:
        env["HOME"] = str(run_as.home)
    return env


def _exit_code(returncode: int) -> int:
    # Killed by signal N is reported as -N by subprocess; shells report 128+N
    if returncode < 0:
        return 128 - returncode
    return returncode


class ProcessLauncher:
    """Starts the child program and waits for it to finish.

    Usage:
        launcher = ProcessLauncher()
        attempt = launcher.run(policy)
    """

    def __init__(self, clock: Callable[[], datetime] = local_now) -> None:
        self._clock = clock

    def run(self, policy: RunPolicy) -> Attempt:
        """Run the policy's program once.

        Args:
            policy: Run policy supplying argv, working directory and identity.

        Returns:
            The finished Attempt, whatever its exit code.

        Raises:
            ChildLaunchError: If the program could not be started at all.
        """
        kwargs: dict[str, object] = {}
        run_as = policy.run_as
        if run_as is not None and supports_identity_switch():
            if run_as.uid is not None:
                kwargs["user"] = run_as.uid
            if run_as.gid is not None:
                kwargs["group"] = run_as.gid
            if kwargs:
                # Drop the supplementary groups inherited from the runner.
                kwargs["extra_groups"] = []

        _logger.debug(
            "process.starting",
            command=policy.program,
            args_count=len(policy.args),
            cwd=str(policy.work_dir) if policy.work_dir else None,
        )

        start_time = self._clock()
        try:
            completed = subprocess.run(
                policy.argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=policy.work_dir,
                env=build_child_env(run_as),
                check=False,
                **kwargs,  # type: ignore[arg-type]
            )
        except FileNotFoundError as e:
            raise ChildLaunchError(
                f"Failed to run {policy.program}: {e}",
                ErrorCode.LAUNCH_NOT_FOUND,
            ) from e
        except PermissionError as e:
            raise ChildLaunchError(
                f"Failed to run {policy.program}: {e}",
                ErrorCode.LAUNCH_PERMISSION_DENIED,
            ) from e
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            code = ErrorCode.LAUNCH_FAILED
            if isinstance(e, OSError) and e.errno == errno.EPERM:
                code = ErrorCode.LAUNCH_PERMISSION_DENIED
            raise ChildLaunchError(f"Failed to run {policy.program}: {e}", code) from e
        end_time = self._clock()

        attempt = Attempt(
            start_time=start_time,
            end_time=end_time,
            output=completed.stdout.decode("utf-8", errors="replace"),
            exit_code=_exit_code(completed.returncode),
        )

        _logger.debug(
            "process.completed",
            exit_code=attempt.exit_code,
            duration_seconds=attempt.duration_seconds,
            output_chars=len(attempt.output),
        )
        return attempt


__all__ = [
    "Attempt",
    "ProcessLauncher",
    "build_child_env",
    "supports_identity_switch",
]
